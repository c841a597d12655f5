from abc import ABC, abstractmethod


class ConnectorResult(dict):
    """Normalised connector payload, e.g. {"results": [...]}."""


class ConnectorError(Exception):
    """A connector could not produce a result (misconfiguration, timeout, upstream error)."""


class BaseConnector(ABC):
    name: str

    @abstractmethod
    async def fetch(self, **kwargs) -> ConnectorResult:
        ...
