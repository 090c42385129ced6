import os
import sys
import tempfile
import unittest
import keyring
import yaml
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository

class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1
    def __init__(self):
        self.store = {}
    def get_password(self, service, username):
        return self.store.get((service, username))
    def set_password(self, service, username, password):
        self.store[(service, username)] = password
    def delete_password(self, service, username):
        self.store.pop((service, username), None)

class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        keyring.set_keyring(DummyKeyring())
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'enc_settings.yaml')

    def tearDown(self) -> None:
        self.tmp.cleanup()
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'api_token': 'secret', 'weight_unit': 'lb'})
        with open(self.path, encoding='utf-8') as f:
            raw = yaml.safe_load(f)
        self.assertIs(raw['api_token'], True)
        data = cfg.load()
        self.assertEqual(data['api_token'], 'secret')
        self.assertEqual(data['weight_unit'], 'lb')

    def test_repository_keeps_token_out_of_yaml(self) -> None:
        db_path = os.path.join(self.tmp.name, 'enc.db')
        repo = SettingsRepository(db_path, self.path)
        repo.set_text('api_token', 'abc123')
        with open(self.path, encoding='utf-8') as f:
            self.assertNotIn('abc123', f.read())
        other = SettingsRepository(db_path, self.path)
        self.assertEqual(other.get_text('api_token', ''), 'abc123')

if __name__ == '__main__':
    unittest.main()
