from pipectl.drivers.state_store.json_state_store import JsonFileStateStore

__all__ = ["JsonFileStateStore"]
