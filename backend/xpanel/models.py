"""Response and snapshot models for the server API."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AssetKind(str, Enum):
    XRAY = "xray"
    GEOIP = "geoip"
    GEOSITE = "geosite"


class XrayState(str, Enum):
    RUNNING = "running"
    STOP = "stop"
    ERROR = "error"


class Usage(BaseModel):
    current: int = 0
    total: int = 0


class XrayInfo(BaseModel):
    state: XrayState = XrayState.STOP
    error_msg: str = ""
    version: str = "Unknown"


class NetIO(BaseModel):
    """Bytes per second since the previous snapshot."""

    up: int = 0
    down: int = 0


class NetTraffic(BaseModel):
    sent: int = 0
    recv: int = 0


class StatusSnapshot(BaseModel):
    t: float = 0.0
    cpu: float = 0.0
    cpu_cores: int = 0
    mem: Usage = Field(default_factory=Usage)
    swap: Usage = Field(default_factory=Usage)
    disk: Usage = Field(default_factory=Usage)
    xray: XrayInfo = Field(default_factory=XrayInfo)
    uptime: int = 0
    loads: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    tcp_count: int = 0
    udp_count: int = 0
    net_io: NetIO = Field(default_factory=NetIO)
    net_traffic: NetTraffic = Field(default_factory=NetTraffic)


class Msg(BaseModel):
    """Uniform envelope returned by every server operation."""

    success: bool
    msg: str = ""
    obj: Optional[Any] = None

    @classmethod
    def ok(cls, obj: Any = None, msg: str = "") -> "Msg":
        return cls(success=True, msg=msg, obj=obj)

    @classmethod
    def fail(cls, action: str, error: BaseException | str) -> "Msg":
        reason = str(error) or error.__class__.__name__
        return cls(success=False, msg=f"{action} failed: {reason}" if action else reason)

    @classmethod
    def result(cls, action: str, error: BaseException | None = None) -> "Msg":
        if error is not None:
            return cls.fail(action, error)
        return cls(success=True, msg=f"{action} successful")
