import os
from typing import Dict, Mapping, Optional

from loguru import logger

from .registry import ProviderName

ENV_KEY_MAP: Dict[ProviderName, str] = {
    ProviderName.COVALENT: "COVALENT_API_KEY",
    ProviderName.ALCHEMY: "ALCHEMY_API_KEY",
    ProviderName.MORALIS: "MORALIS_API_KEY",
    ProviderName.MOBULA: "MOBULA_API_KEY",
    ProviderName.CODEX: "CODEX_API_KEY",
}


def mask_key(key: str) -> str:
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class EnvKeyResolver:
    """
    Resolves API keys, preferring server-side environment keys over
    caller-supplied ones. The environment mapping is injectable so tests
    never touch ``os.environ``.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        self.env = os.environ if env is None else env

    def env_key(self, provider: ProviderName) -> Optional[str]:
        return _clean(self.env.get(ENV_KEY_MAP[ProviderName(provider)]))

    def resolve(self, provider: ProviderName, client_key: Optional[str] = None) -> Optional[str]:
        key = self.env_key(provider) or _clean(client_key)
        if key is None:
            logger.debug(f"No API key available for {provider}")
        return key

    def key_status(self) -> Dict[str, Dict[str, object]]:
        status = {}
        for provider in ProviderName:
            key = self.env_key(provider)
            status[provider.value] = {"has_env_key": key is not None, "masked": mask_key(key) if key else ""}
        return status
