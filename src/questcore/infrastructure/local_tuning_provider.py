from copy import deepcopy

from questcore.application.services.tuning_tables import DEFAULT_TUNING_TABLES


class LocalTuningProvider:
    """Serves the tuning tables bundled with the package."""

    def __init__(self, tables: dict[str, dict] | None = None) -> None:
        self._tables = tables if tables is not None else DEFAULT_TUNING_TABLES

    def get_table(self, name: str) -> dict:
        payload = self._tables.get(str(name or "").strip().lower())
        if payload is None:
            raise ValueError(f"Unknown tuning table '{name}'")
        return deepcopy(payload)

    def close(self) -> None:
        return None
