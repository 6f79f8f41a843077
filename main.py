import logging

import uvicorn

from app import app  # noqa
from config import DEBUG, UVICORN_HOST, UVICORN_PORT, UVICORN_SSL_CERTFILE, UVICORN_SSL_KEYFILE, UVICORN_UDS

if __name__ == "__main__":
    bind_args = {}
    if UVICORN_SSL_CERTFILE and UVICORN_SSL_KEYFILE:
        bind_args["ssl_certfile"] = UVICORN_SSL_CERTFILE
        bind_args["ssl_keyfile"] = UVICORN_SSL_KEYFILE

    if UVICORN_UDS:
        bind_args["uds"] = UVICORN_UDS
    else:
        bind_args["host"] = UVICORN_HOST
        bind_args["port"] = UVICORN_PORT

    try:
        uvicorn.run(
            "main:app",
            **bind_args,
            workers=1,
            reload=DEBUG,
            log_level=logging.DEBUG if DEBUG else logging.INFO,
        )
    except FileNotFoundError:  # to prevent error on removing unix sock
        pass
