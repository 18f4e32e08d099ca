from enum import Enum


class PingSourceKind(str, Enum):
    HTTP = "http"
    POSTGRES = "postgres"


class FetchKind(str, Enum):
    REFRESH = "refresh"
    TICK = "tick"
