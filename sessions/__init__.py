from sessions.telethon_refresher import TelethonRefresher, extract_init_data

__all__ = ["TelethonRefresher", "extract_init_data"]
