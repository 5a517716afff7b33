"""
Configuration management for the fortune cookie client.
"""
import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class ClusterConfig:
    """RPC endpoint and program settings."""
    rpc_url: str
    commitment: str
    program_id: str
    confirm_timeout_s: float


@dataclass
class WalletConfig:
    """Signing authority settings."""
    keypair_path: str
    confirm_before_sign: bool


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    index: int
    width: int
    height: int
    fps: int


@dataclass
class MediaPipeConfig:
    """MediaPipe HandLandmarker configuration settings."""
    model_url: str
    model_path: str
    num_hands: int
    min_hand_detection_confidence: float
    min_hand_presence_confidence: float
    min_tracking_confidence: float


@dataclass
class CrackConfig:
    """Two-hand pull-apart gesture configuration."""
    low_threshold: float
    high_threshold: float
    refractory_ms: int
    init_timeout_ms: int
    camera_timeout_ms: int


@dataclass
class GesturesConfig:
    """Gesture recognition configuration."""
    crack: CrackConfig


@dataclass
class DisplayConfig:
    """Display configuration settings."""
    show_preview: bool
    window_name: str


@dataclass
class ContentConfig:
    """Fortune text source."""
    fortunes_path: str


@dataclass
class Cfg:
    """Main configuration class."""
    cluster: ClusterConfig
    wallet: WalletConfig
    camera: CameraConfig
    mediapipe: MediaPipeConfig
    gestures: GesturesConfig
    display: DisplayConfig
    content: ContentConfig


DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.default.yaml"


def load_config(path: Optional[str] = None) -> Cfg:
    """
    Load configuration from YAML file, then apply environment overrides.

    Args:
        path: Path to config file. If None, uses the packaged config.default.yaml

    Returns:
        Configuration object with all settings
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f)

    cfg = _dict_to_config(data)
    _apply_env_overrides(cfg)
    return cfg


def _apply_env_overrides(cfg: Cfg) -> None:
    """Let .env / process environment override secrets and endpoints."""
    load_dotenv()

    rpc_url = os.getenv("FORTUNE_RPC_URL")
    if rpc_url:
        cfg.cluster.rpc_url = rpc_url

    program_id = os.getenv("FORTUNE_PROGRAM_ID")
    if program_id:
        cfg.cluster.program_id = program_id

    keypair = os.getenv("FORTUNE_KEYPAIR")
    if keypair:
        cfg.wallet.keypair_path = keypair


def _dict_to_config(data: Dict[str, Any]) -> Cfg:
    """Convert dictionary to configuration object."""
    cluster_data = data['cluster']
    cluster = ClusterConfig(
        rpc_url=cluster_data['rpc_url'],
        commitment=cluster_data['commitment'],
        program_id=cluster_data['program_id'],
        confirm_timeout_s=float(cluster_data['confirm_timeout_s'])
    )

    wallet_data = data['wallet']
    wallet = WalletConfig(
        keypair_path=os.path.expanduser(wallet_data['keypair_path']),
        confirm_before_sign=bool(wallet_data['confirm_before_sign'])
    )

    camera_data = data['camera']
    camera = CameraConfig(
        index=camera_data['index'],
        width=camera_data['width'],
        height=camera_data['height'],
        fps=camera_data['fps']
    )

    mp_data = data['mediapipe']
    mediapipe = MediaPipeConfig(
        model_url=mp_data['model_url'],
        model_path=os.path.expanduser(mp_data['model_path']),
        num_hands=mp_data['num_hands'],
        min_hand_detection_confidence=mp_data['min_hand_detection_confidence'],
        min_hand_presence_confidence=mp_data['min_hand_presence_confidence'],
        min_tracking_confidence=mp_data['min_tracking_confidence']
    )

    crack_data = data['gestures']['crack']
    crack = CrackConfig(
        low_threshold=crack_data['low_threshold'],
        high_threshold=crack_data['high_threshold'],
        refractory_ms=crack_data['refractory_ms'],
        init_timeout_ms=crack_data['init_timeout_ms'],
        camera_timeout_ms=crack_data['camera_timeout_ms']
    )
    if crack.low_threshold >= crack.high_threshold:
        raise ValueError(
            f"gestures.crack.low_threshold ({crack.low_threshold}) must be below "
            f"high_threshold ({crack.high_threshold})"
        )
    gestures = GesturesConfig(crack=crack)

    display_data = data['display']
    display = DisplayConfig(
        show_preview=display_data['show_preview'],
        window_name=display_data['window_name']
    )

    content_data = data['content']
    content = ContentConfig(
        fortunes_path=content_data['fortunes_path'] or ""
    )

    return Cfg(
        cluster=cluster,
        wallet=wallet,
        camera=camera,
        mediapipe=mediapipe,
        gestures=gestures,
        display=display,
        content=content
    )
