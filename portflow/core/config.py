# portflow/core/config.py
from typing import Any, Dict, List
import yaml
import os
import sys
from dotenv import load_dotenv

PHRASE_KINDS = (
    "permission_denied",
    "daemon_not_running",
    "connection_refused",
    "cancelled",
    "not_found",
)

# Phrases as printed by kill, iptables, pkexec, docker, podman and kubectl.
DEFAULT_PHRASES: Dict[str, Dict[str, List[str]]] = {
    "default": {
        "permission_denied": ["operation not permitted", "permission denied"],
        "daemon_not_running": ["cannot connect", "is the docker daemon running", "not running"],
        "connection_refused": ["unable to connect", "connection refused"],
        "cancelled": ["dismissed", "cancelled", "canceled"],
        "not_found": ["no such process"],
    },
    "darwin": {
        "permission_denied": ["operation not permitted", "permission denied", "not permitted"],
    },
}


class Config:
    """
    Loads configuration from environment variables (Priority 1) and 'config.yaml' (Priority 2).
    Values missing from both fall back to built-in defaults.
    """
    def __init__(self, config_path: str = "config.yaml") -> None:
        current_dir = os.path.dirname(os.path.abspath(__file__))
        project_root = os.path.abspath(os.path.join(current_dir, '..', '..'))
        env_path = os.path.join(project_root, '.env')

        if os.path.exists(env_path):
            load_dotenv(dotenv_path=env_path, override=False)
        else:
            load_dotenv(override=False)

        self.config_path = config_path
        self.data = self._load_yaml()

    def _load_yaml(self) -> Dict[str, Any]:
        if not os.path.exists(self.config_path):
            return {}
        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError:
            return {}
        return data if isinstance(data, dict) else {}

    def _section(self, name: str) -> Dict[str, Any]:
        value = self.data.get(name, {})
        return value if isinstance(value, dict) else {}

    @staticmethod
    def _number(raw: Any, default: float) -> float:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    # --- REFRESH ---
    @property
    def refresh_interval_ms(self) -> int:
        raw = os.getenv("PORTFLOW_REFRESH_INTERVAL_MS", self._section("refresh").get("interval_ms", 3000))
        return int(self._number(raw, 3000))

    # --- COMMANDS ---
    @property
    def command_timeout(self) -> float:
        raw = os.getenv("PORTFLOW_COMMAND_TIMEOUT", self._section("commands").get("timeout", 5))
        return self._number(raw, 5.0)

    @property
    def probe_timeout(self) -> float:
        raw = os.getenv("PORTFLOW_PROBE_TIMEOUT", self._section("commands").get("probe_timeout", 5))
        return self._number(raw, 5.0)

    @property
    def elevation_command(self) -> str:
        return os.getenv("PORTFLOW_ELEVATION_COMMAND", self._section("elevation").get("command", "pkexec"))

    @property
    def elevation_timeout(self) -> float:
        raw = os.getenv("PORTFLOW_ELEVATION_TIMEOUT", self._section("elevation").get("timeout", 60))
        return self._number(raw, 60.0)

    # --- LIMITS ---
    @property
    def error_length(self) -> int:
        return int(self._number(self._section("limits").get("error_length"), 100))

    @property
    def message_length(self) -> int:
        return int(self._number(self._section("limits").get("message_length"), 200))

    # --- SERVER ---
    @property
    def server_host(self) -> str:
        return os.getenv("PORTFLOW_SERVER_HOST", self._section("server").get("host", "127.0.0.1"))

    @property
    def server_port(self) -> int:
        raw = os.getenv("PORTFLOW_SERVER_PORT", self._section("server").get("port", 8765))
        return int(self._number(raw, 8765))

    # --- PHRASES ---
    def phrases(self, kind: str, platform: str = sys.platform) -> List[str]:
        """
        Recognized output phrases for one failure kind, lower-cased.
        A platform block replaces the default block for the kinds it names.
        """
        if kind not in PHRASE_KINDS:
            raise KeyError(f"Unknown phrase kind: {kind}")

        configured = self._section("phrases")
        for source in (configured, DEFAULT_PHRASES):
            for block_name in (platform, "default"):
                block = source.get(block_name) or {}
                if kind in block:
                    return [p.lower() for p in block[kind]]
        return []
