from fastapi import Request

from config import Settings
from emailer import Mailer
from encryption import FieldEncryptor
from storage import S3Storage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_storage(request: Request) -> S3Storage:
    return request.app.state.storage


def get_encryptor(request: Request) -> FieldEncryptor:
    return request.app.state.encryptor
