"""
Test cases for configuration loading.
"""
import os
import tempfile
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

import yaml

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fortune_cookie.config import DEFAULT_CONFIG_PATH, load_config

ENV_KEYS = ("FORTUNE_RPC_URL", "FORTUNE_PROGRAM_ID", "FORTUNE_KEYPAIR")


class TestLoadConfig(unittest.TestCase):
    """Test YAML loading and environment overrides."""

    def setUp(self):
        patcher = patch.dict(os.environ)
        patcher.start()
        self.addCleanup(patcher.stop)
        for key in ENV_KEYS:
            os.environ.pop(key, None)
        # keep a stray .env from leaking overrides into these tests
        dotenv = patch("fortune_cookie.config.load_dotenv")
        dotenv.start()
        self.addCleanup(dotenv.stop)

    def write_config(self, mutate) -> str:
        with open(DEFAULT_CONFIG_PATH, 'r') as f:
            data = yaml.safe_load(f)
        mutate(data)
        tmp = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
        with tmp:
            yaml.safe_dump(data, tmp)
        self.addCleanup(os.unlink, tmp.name)
        return tmp.name

    def test_defaults(self):
        cfg = load_config()

        self.assertEqual(cfg.cluster.rpc_url, "https://api.devnet.solana.com")
        self.assertEqual(cfg.cluster.commitment, "confirmed")
        self.assertEqual(cfg.cluster.program_id, "GpPcUYfhJzGwpN1xwNMHRiEGmj2BnvAtPkZSn2Nyi8n8")
        self.assertEqual(cfg.gestures.crack.low_threshold, 0.2)
        self.assertEqual(cfg.gestures.crack.high_threshold, 0.4)
        self.assertEqual(cfg.gestures.crack.refractory_ms, 2000)
        self.assertEqual(cfg.gestures.crack.init_timeout_ms, 10000)
        self.assertEqual(cfg.gestures.crack.camera_timeout_ms, 5000)
        self.assertEqual(cfg.mediapipe.num_hands, 2)
        self.assertEqual(cfg.content.fortunes_path, "")

    def test_paths_are_expanded(self):
        cfg = load_config()
        self.assertFalse(cfg.wallet.keypair_path.startswith("~"))
        self.assertFalse(cfg.mediapipe.model_path.startswith("~"))

    def test_env_overrides(self):
        os.environ["FORTUNE_RPC_URL"] = "http://127.0.0.1:8899"
        os.environ["FORTUNE_KEYPAIR"] = "/tmp/test-keypair.json"

        cfg = load_config()

        self.assertEqual(cfg.cluster.rpc_url, "http://127.0.0.1:8899")
        self.assertEqual(cfg.wallet.keypair_path, "/tmp/test-keypair.json")

    def test_inverted_thresholds_rejected(self):
        def invert(data):
            data['gestures']['crack']['low_threshold'] = 0.5
            data['gestures']['crack']['high_threshold'] = 0.3

        with self.assertRaises(ValueError):
            load_config(self.write_config(invert))

    def test_custom_file(self):
        def shorten(data):
            data['gestures']['crack']['refractory_ms'] = 500

        cfg = load_config(self.write_config(shorten))
        self.assertEqual(cfg.gestures.crack.refractory_ms, 500)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")


if __name__ == '__main__':
    unittest.main()
