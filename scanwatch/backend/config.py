"""
backend/config.py

Application configuration via Pydantic Settings.
All values can be overridden with environment variables or a .env file.

Quick start — create a .env file in your project root:
    ADDR_SCAN_THRESHOLD=25
    PORT_SCAN_THRESHOLD=15
    ADDR_SCAN_CUSTOM_THRESHOLDS=80:5,443:10
    LOCAL_NETWORKS=10.0.0.0/8,192.168.0.0/16
"""

from __future__ import annotations

import ipaddress
import json
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Address scan: one scanner, many victims, one port
    ADDR_SCAN_INTERVAL_SECONDS: float = 300.0
    ADDR_SCAN_THRESHOLD: int = 25
    ADDR_SCAN_CUSTOM_THRESHOLDS: Annotated[dict[int, int], NoDecode] = {}

    # Port scan: one scanner, one victim, many ports
    PORT_SCAN_INTERVAL_SECONDS: float = 300.0
    PORT_SCAN_THRESHOLD: int = 15

    # Locality tag on alerts
    LOCAL_NETWORKS: Annotated[list[str], NoDecode] = [
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
    ]

    # Expired-aggregate eviction
    SWEEP_INTERVAL_SECONDS: float = 30.0

    # Sink-side suppression of repeated (note, identifier) alerts
    ALERT_SUPPRESS_SECONDS: float = 3600.0

    # Queues
    EVENT_QUEUE_SIZE: int = 10_000
    ALERT_QUEUE_SIZE: int = 500

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator(
        "ADDR_SCAN_INTERVAL_SECONDS",
        "PORT_SCAN_INTERVAL_SECONDS",
        "SWEEP_INTERVAL_SECONDS",
    )
    @classmethod
    def positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"interval must be > 0 — got {v}")
        return v

    @field_validator("ADDR_SCAN_THRESHOLD", "PORT_SCAN_THRESHOLD")
    @classmethod
    def positive_threshold(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"threshold must be >= 1 — got {v}")
        return v

    @field_validator("ADDR_SCAN_CUSTOM_THRESHOLDS", mode="before")
    @classmethod
    def parse_custom_thresholds(cls, v):
        # Accepts a JSON object ('{"80": 5}') or 'port:count' pairs ('80:5,443:10')
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return {}
            if v.startswith("{"):
                return json.loads(v)
            pairs: dict[str, str] = {}
            for item in v.split(","):
                if not item.strip():
                    continue
                port, sep, count = item.partition(":")
                if not sep:
                    raise ValueError(f"expected 'port:count', got {item!r}")
                pairs[port.strip()] = count.strip()
            return pairs
        return v

    @field_validator("ADDR_SCAN_CUSTOM_THRESHOLDS")
    @classmethod
    def check_custom_thresholds(cls, v: dict[int, int]) -> dict[int, int]:
        for port, count in v.items():
            if not 0 <= port <= 65535:
                raise ValueError(f"port out of range: {port}")
            if count < 1:
                raise ValueError(f"threshold for port {port} must be >= 1 — got {count}")
        return v

    @field_validator("LOCAL_NETWORKS", mode="before")
    @classmethod
    def parse_networks(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [net.strip() for net in v.split(",") if net.strip()]
        return v

    @field_validator("LOCAL_NETWORKS")
    @classmethod
    def check_networks(cls, v: list[str]) -> list[str]:
        for net in v:
            ipaddress.ip_network(net, strict=False)
        return v
