#src/Controller/deps.py

from contextlib import contextmanager
from typing import Generator, Iterator

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from src.Core.exceptions import ProviderError, SessionUnavailable, ValidationError
from src.DB.session import SessionLocal
from src.Services.provider.gateway import ProviderGateway


def get_DB() -> Generator:
    DB = SessionLocal()
    try:
        yield DB
    finally:
        DB.close()


def get_gateway(DB: Session = Depends(get_DB)) -> Generator:
    gateway = ProviderGateway(DB)
    try:
        yield gateway
    finally:
        gateway.close()


@contextmanager
def http_errors() -> Iterator[None]:
    """
    Translate pipeline exceptions raised inside a route body.

        ValidationError    -> 400
        SessionUnavailable -> 503
        ProviderError      -> 502
    """
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SessionUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
