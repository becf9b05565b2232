"""Default configuration values.

This module defines the built-in default configuration values that are used
when no other configuration sources provide values.

Note: DEFAULT_CONFIG is a plain dict so it can be fed straight into
deep_merge. The merge functions create copies, so the original is never
mutated.
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "logging": {
        "level": "info",
        "format": "line",
        "console": True,
    },
    "supervisor": {
        "name": "sol_new",
        "command": ["cargo", "run"],
        "log_file": "sol_new_restart.log",
        "max_attempts": 100,
        "retry_delay": 2.0,
        "shutdown_timeout": 5.0,
        "cwd": "",
        "env": {},
    },
    "service": {
        "name": "Redis",
        "port": 6379,
        "match_token": "redis-server",
        "start_command": ["redis-server"],
        "config_path": "/etc/redis/redis.conf",
        "log_file": "redis_control.log",
        "settle_delay": 1.0,
        "poll_interval": 1.0,
        "max_polls": 5,
        "kill_settle": -1.0,
        "lock_timeout": 30.0,
        "lock_dir": "",
        "info_command": ["redis-cli", "-p", "{port}", "info"],
        "info_fields": [
            "redis_version",
            "uptime_in_days",
            "connected_clients",
            "used_memory_human",
            "total_connections_received",
        ],
        "info_timeout_ms": 5000,
    },
}
