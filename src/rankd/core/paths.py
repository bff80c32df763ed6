import os
from pathlib import Path


def get_app_dir(app_name: str = "rankd") -> Path:
    """
    Returns the XDG-aware application directory for data and logs.
    """
    if "XDG_DATA_HOME" in os.environ:
        return Path(os.environ["XDG_DATA_HOME"]) / app_name
    else:
        return Path.home() / ".local" / "share" / app_name


def default_db_path() -> Path:
    """Returns the default location of the rankings database."""
    return get_app_dir() / "rankings.duckdb"
