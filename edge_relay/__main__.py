import uvicorn

from edge_relay.vars import HOST, PORT


def main():
    uvicorn.run("edge_relay.server:app", host=HOST, port=PORT, proxy_headers=True)


if __name__ == "__main__":
    main()
