import os
import unittest
from unittest.mock import patch

from drift.utils.app_config import (
    DEFAULT_INPUT_DIR,
    get_cors_origins,
    get_input_dir,
    get_manifest_path,
    get_max_time_gap_seconds,
    get_processor_options,
    get_simplify_tolerance,
    get_watch_debounce_ms,
    get_watch_enabled,
    parse_env_bool,
)

DRIFT_VARS = (
    "DRIFT_CORS_ORIGINS",
    "DRIFT_INPUT_DIR",
    "DRIFT_OUTPUT_DIR",
    "DRIFT_MANIFEST_PATH",
    "DRIFT_SIMPLIFY_TOLERANCE",
    "DRIFT_ELEVATION_THRESHOLD",
    "DRIFT_MERGE_SEGMENTS",
    "DRIFT_MAX_TIME_GAP_SECONDS",
    "DRIFT_MAX_DISTANCE_GAP_KM",
    "DRIFT_WATCH",
    "DRIFT_WATCH_DEBOUNCE_MS",
)


def clean_env(**values):
    env = {k: v for k, v in os.environ.items() if k not in DRIFT_VARS}
    env.update(values)
    return patch.dict(os.environ, env, clear=True)


class ParseEnvBoolTests(unittest.TestCase):
    def test_true_values(self):
        for value in ["1", "true", "TRUE", " yes ", "On", "y"]:
            self.assertTrue(parse_env_bool(value, default=False))

    def test_false_values(self):
        for value in ["0", "false", "FALSE", " no ", "Off", "n"]:
            self.assertFalse(parse_env_bool(value, default=True))

    def test_unknown_value_uses_default(self):
        self.assertTrue(parse_env_bool("maybe", default=True))
        self.assertFalse(parse_env_bool("maybe", default=False))

    def test_none_uses_default(self):
        self.assertTrue(parse_env_bool(None, default=True))
        self.assertFalse(parse_env_bool(None, default=False))


class CorsOriginsTests(unittest.TestCase):
    def test_default_origins_are_localhost_only_patterns(self):
        with clean_env():
            origins = get_cors_origins()
        self.assertEqual(
            origins,
            [r"^http://localhost(:\d+)?$", r"^http://127\.0\.0\.1(:\d+)?$"],
        )

    def test_env_override_parses_csv_and_trims(self):
        with clean_env(DRIFT_CORS_ORIGINS=" http://localhost:3000,https://example.com , "):
            origins = get_cors_origins()
        self.assertEqual(origins, ["http://localhost:3000", "https://example.com"])


class DirectoryConfigTests(unittest.TestCase):
    def test_defaults(self):
        with clean_env():
            self.assertEqual(get_input_dir(), DEFAULT_INPUT_DIR)
            self.assertEqual(get_manifest_path(), os.path.join("/app/output", "manifest.json"))

    def test_manifest_follows_output_dir(self):
        with clean_env(DRIFT_OUTPUT_DIR="/srv/tracks"):
            self.assertEqual(get_manifest_path(), os.path.join("/srv/tracks", "manifest.json"))

    def test_explicit_manifest_path(self):
        with clean_env(DRIFT_OUTPUT_DIR="/srv/tracks", DRIFT_MANIFEST_PATH="/var/lib/drift/m.json"):
            self.assertEqual(get_manifest_path(), "/var/lib/drift/m.json")

    def test_blank_values_use_defaults(self):
        with clean_env(DRIFT_INPUT_DIR="   "):
            self.assertEqual(get_input_dir(), DEFAULT_INPUT_DIR)


class TuningConfigTests(unittest.TestCase):
    def test_processor_defaults(self):
        with clean_env():
            self.assertEqual(
                get_processor_options(),
                {
                    "simplify_tolerance": 0.0001,
                    "elevation_threshold": 2,
                    "merge_segments": True,
                    "max_time_gap_seconds": 300,
                    "max_distance_gap_km": 0.5,
                },
            )

    def test_overrides(self):
        with clean_env(
            DRIFT_SIMPLIFY_TOLERANCE="0.0005",
            DRIFT_MERGE_SEGMENTS="off",
            DRIFT_MAX_TIME_GAP_SECONDS="600",
        ):
            options = get_processor_options()
        self.assertEqual(options["simplify_tolerance"], 0.0005)
        self.assertFalse(options["merge_segments"])
        self.assertEqual(options["max_time_gap_seconds"], 600)

    def test_invalid_numbers_fall_back(self):
        with clean_env(DRIFT_SIMPLIFY_TOLERANCE="lots", DRIFT_MAX_TIME_GAP_SECONDS="5m"):
            self.assertEqual(get_simplify_tolerance(), 0.0001)
            self.assertEqual(get_max_time_gap_seconds(), 300)

    def test_negative_values_clamped(self):
        with clean_env(DRIFT_SIMPLIFY_TOLERANCE="-1", DRIFT_WATCH_DEBOUNCE_MS="-50"):
            self.assertEqual(get_simplify_tolerance(), 0.0)
            self.assertEqual(get_watch_debounce_ms(), 0)

    def test_watch_settings(self):
        with clean_env():
            self.assertFalse(get_watch_enabled())
            self.assertEqual(get_watch_debounce_ms(), 200)
        with clean_env(DRIFT_WATCH="yes", DRIFT_WATCH_DEBOUNCE_MS="750"):
            self.assertTrue(get_watch_enabled())
            self.assertEqual(get_watch_debounce_ms(), 750)


if __name__ == "__main__":
    unittest.main()
