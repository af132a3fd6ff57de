import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from placelens.config import PipelineConfig, load_config

CONFIG_YAML = """
pipeline:
  data_dir: /srv/placelens
  debug_analytics: true
  search_radius_m: 250
  ocr_languages: [en, es]
  unknown_setting: ignored
"""


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.path = Path(self.tmp) / "placelens.yaml"
        self.path.write_text(CONFIG_YAML)
        env = {k: v for k, v in os.environ.items() if not k.startswith('PLACELENS_')}
        patcher = mock.patch.dict(os.environ, env, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_yaml_values(self):
        config = load_config(str(self.path))

        self.assertEqual(config.data_dir, "/srv/placelens")
        self.assertTrue(config.debug_analytics)
        self.assertEqual(config.search_radius_m, 250)
        self.assertEqual(config.ocr_languages, ['en', 'es'])
        self.assertEqual(config.search_timeout_s, 8.0)

    def test_missing_file_gives_defaults(self):
        config = load_config(str(Path(self.tmp) / "missing.yaml"))
        self.assertEqual(config, PipelineConfig())
        self.assertFalse(config.debug_analytics)

    def test_root_mapping_without_pipeline_key(self):
        self.path.write_text("search_timeout_s: 2.5\n")
        self.assertEqual(load_config(str(self.path)).search_timeout_s, 2.5)

    def test_environment_overrides(self):
        os.environ.update({
            'PLACELENS_DATA_DIR': '/var/lib/placelens',
            'PLACELENS_DEBUG_ANALYTICS': 'off',
            'PLACELENS_SEARCH_TIMEOUT': '3',
            'PLACELENS_NOMINATIM_URL': 'http://localhost:8080',
            'PLACELENS_OCR_GPU': 'yes',
        })
        config = load_config(str(self.path))

        self.assertEqual(config.photo_db_path, str(Path('/var/lib/placelens') / "places.db"))
        self.assertEqual(config.analytics_images_dir, str(Path('/var/lib/placelens') / "ocr_images"))
        self.assertFalse(config.debug_analytics)
        self.assertEqual(config.search_timeout_s, 3.0)
        self.assertEqual(config.nominatim_url, 'http://localhost:8080')
        self.assertTrue(config.ocr_gpu)

    def test_log_level_from_file_and_environment(self):
        self.path.write_text("pipeline:\n  log_level: WARNING\n")
        self.assertEqual(load_config(str(self.path)).log_level, 'WARNING')

        os.environ['PLACELENS_LOG_LEVEL'] = ' debug '
        self.assertEqual(load_config(str(self.path)).log_level, 'DEBUG')

    def test_from_dict_ignores_unknown_keys(self):
        config = PipelineConfig.from_dict({'recognition_workers': 2, 'bogus': 1})
        self.assertEqual(config.recognition_workers, 2)


if __name__ == '__main__':
    unittest.main()
