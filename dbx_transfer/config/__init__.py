from .config import DEFAULT_TOKEN_CACHE_PATH, Settings, get_env, settings

__all__ = ["DEFAULT_TOKEN_CACHE_PATH", "Settings", "settings", "get_env"]
