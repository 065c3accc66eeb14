"""Settings library for server, storage and service configuration.

Provides:
    - Schema validation and enforcement for the settings.json structure.
    - Loading, saving and reverting application settings.
    - Loading and validating the Google OAuth client_secret.json.
    - Environment overrides read from the process environment or a ``.env`` file.
"""

import json
import logging
import os
import pathlib
import shutil
from typing import Dict, Any, Optional, List

from PySide6 import QtCore
from dotenv import load_dotenv

from ..status import status

app_name: str = 'FinTrack'

CONFIG_DIR_ENV_KEY: str = 'FINTRACK_CONFIG_DIR'

GOOGLE_AUTH_URI: str = 'https://accounts.google.com/o/oauth2/auth'
GOOGLE_TOKEN_URI: str = 'https://oauth2.googleapis.com/token'

SETTINGS_SCHEMA: Dict[str, Any] = {
    'server': {
        'type': dict,
        'required': True,
        'item_schema': {
            'app_url': {'type': str, 'required': True},
            'host': {'type': str, 'required': True},
            'port': {'type': int, 'required': True},
            'cookie_secure': {'type': bool, 'required': True},
        }
    },
    'drive': {
        'type': dict,
        'required': True,
        'item_schema': {
            'filename': {'type': str, 'required': True},
        }
    },
    'client': {
        'type': dict,
        'required': True,
        'item_schema': {
            'poll_interval': {'type': int, 'required': True},
            'grace_period': {'type': int, 'required': True},
            'request_timeout': {'type': int, 'required': True},
        }
    },
    'insights': {
        'type': dict,
        'required': True,
        'item_schema': {
            'base_url': {'type': str, 'required': True},
            'model': {'type': str, 'required': True},
            'api_key': {'type': str, 'required': True},
        }
    },
    'exchange': {
        'type': dict,
        'required': True,
        'item_schema': {
            'url': {'type': str, 'required': True},
            'timeout': {'type': int, 'required': True},
            'fee': {'type': float, 'required': True},
        }
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, tuple] = {
    'APP_URL': ('server', 'app_url'),
    'AI_API_KEY': ('insights', 'api_key'),
    'AI_BASE_URL': ('insights', 'base_url'),
    'AI_MODEL': ('insights', 'model'),
}


def _validate_section(name: str, section: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate a settings section against its item schema.

    Args:
        name: Section name, used in error messages.
        section: The section data.
        item_schema: Dict describing required fields and their types.

    Raises:
        TypeError: If the section is not a dict or a field has the wrong type.
        ValueError: If a required field is missing.
    """
    logging.debug(f'Validating "{name}" section.')
    if not isinstance(section, dict):
        msg: str = f'"{name}" must be a dict.'
        logging.error(msg)
        raise TypeError(msg)

    for field, field_specs in item_schema.items():
        if field_specs['required'] and field not in section:
            msg = f'Section "{name}" missing "{field}".'
            logging.error(msg)
            raise ValueError(msg)
        if field not in section:
            continue

        value = section[field]
        _type = field_specs['type']
        # ints are acceptable where floats are expected, bools are never ints
        if _type is float and isinstance(value, int) and not isinstance(value, bool):
            continue
        if _type is int and isinstance(value, bool):
            msg = f'Section "{name}" field "{field}" must be {_type}, got {type(value)}.'
            logging.error(msg)
            raise TypeError(msg)
        if not isinstance(value, _type):
            msg = f'Section "{name}" field "{field}" must be {_type}, got {type(value)}.'
            logging.error(msg)
            raise TypeError(msg)


class ConfigPaths:
    """Manage application file paths and ensure default templates and directories exist.

    The data directory is the platform's application data location unless the
    ``FINTRACK_CONFIG_DIR`` environment variable points elsewhere.
    """

    def __init__(self) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')

        override = os.environ.get(CONFIG_DIR_ENV_KEY)
        if override:
            app_data_dir = pathlib.Path(override)
        else:
            p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
            app_data_dir = pathlib.Path(p)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.settings_template: pathlib.Path = self.template_dir / 'settings.json.template'
        self.client_secret_template: pathlib.Path = self.template_dir / 'client_secret.json.template'

        self.app_data_dir: pathlib.Path = app_data_dir
        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.db_dir: pathlib.Path = app_data_dir / 'db'

        self.settings_path: pathlib.Path = self.config_dir / 'settings.json'
        self.client_secret_path: pathlib.Path = self.config_dir / 'client_secret.json'
        self.db_path: pathlib.Path = self.db_dir / 'cache.db'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify templates exist and prepare configuration directories and files.

        Raises:
            FileNotFoundError: If a required template is missing.
        """
        logging.debug(f'Verifying required templates in {self.template_dir}')
        for path in (self.settings_template, self.client_secret_template):
            if not path.exists():
                msg: str = f'Missing template: {path}'
                logging.error(msg)
                raise FileNotFoundError(msg)

        for directory in (self.config_dir, self.db_dir):
            if not directory.exists():
                logging.debug(f'Creating directory: {directory}')
                directory.mkdir(parents=True, exist_ok=True)

        if not self.settings_path.exists():
            logging.debug(f'Copying default settings from template to {self.settings_path}')
            shutil.copy(self.settings_template, self.settings_path)
        if not self.client_secret_path.exists():
            logging.debug(f'Copying default client_secret from template to {self.client_secret_path}')
            shutil.copy(self.client_secret_template, self.client_secret_path)

    def revert_settings_to_template(self) -> None:
        """Restore settings.json from the default template file."""
        logging.debug(f'Reverting settings to template: {self.settings_template}')
        shutil.copy(self.settings_template, self.settings_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save settings.json sections and client_secret.json.
    """
    required_client_secret_keys: List[str] = ['client_id', 'client_secret', 'auth_uri', 'token_uri']

    def __init__(self, settings_path: Optional[str] = None, client_secret_path: Optional[str] = None) -> None:
        super().__init__()

        load_dotenv(override=False)

        self.settings_path = pathlib.Path(settings_path) if settings_path else self.settings_path
        self.client_secret_path = (
            pathlib.Path(client_secret_path)
            if client_secret_path
            else self.client_secret_path
        )

        self.settings_data: Dict[str, Any] = {k: {} for k in SETTINGS_SCHEMA}
        self.client_secret_data: Dict[str, Any] = {}

        self.init_data()

    def __getitem__(self, key: str) -> Any:
        """Retrieve a setting using a dotted ``section.key`` name.

        Raises:
            KeyError: If the section or key is unknown.
        """
        section, _, field = key.partition('.')
        if section not in SETTINGS_SCHEMA or field not in SETTINGS_SCHEMA[section]['item_schema']:
            raise KeyError(f'Invalid settings key: {key}')
        return self.settings_data[section].get(field)

    def init_data(self) -> None:
        """Reload settings and client_secret data, emitting change signals."""
        self.load_settings()
        self.load_client_secret()

        from ..core.actions import signals
        signals.configSectionChanged.emit('client_secret')
        for section in SETTINGS_SCHEMA:
            signals.configSectionChanged.emit(section)

    def load_settings(self) -> Dict[str, Any]:
        """Load settings.json from disk, validate it and apply environment overrides.

        Raises:
            status.SettingsNotFoundException: If settings.json is missing.
            status.SettingsInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading settings from "{self.settings_path}"')
        if not self.settings_path.exists():
            raise status.SettingsNotFoundException

        try:
            with self.settings_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_settings_data(data)
        except (ValueError, TypeError, json.JSONDecodeError) as ex:
            raise status.SettingsInvalidException(str(ex)) from ex

        self.settings_data = data
        self._apply_env_overrides()
        return self.settings_data

    def _apply_env_overrides(self) -> None:
        for env_key, (section, field) in ENV_OVERRIDES.items():
            value = os.environ.get(env_key)
            if value:
                logging.debug(f'Overriding "{section}.{field}" from ${env_key}')
                self.settings_data[section][field] = value

        # Strip the trailing slash so redirect URIs stay stable
        app_url = self.settings_data['server'].get('app_url', '')
        self.settings_data['server']['app_url'] = app_url.rstrip('/')

    def load_client_secret(self) -> Dict[str, Any]:
        """Load client_secret.json, preferring ``GOOGLE_CLIENT_ID``/``GOOGLE_CLIENT_SECRET`` when set.

        Raises:
            status.ClientSecretInvalidException: If JSON parsing or required fields are missing.
        """
        client_id = os.environ.get('GOOGLE_CLIENT_ID')
        client_secret = os.environ.get('GOOGLE_CLIENT_SECRET')
        if client_id and client_secret:
            logging.debug('Using Google client secret from the environment.')
            self.client_secret_data = {
                'web': {
                    'client_id': client_id,
                    'client_secret': client_secret,
                    'auth_uri': GOOGLE_AUTH_URI,
                    'token_uri': GOOGLE_TOKEN_URI,
                }
            }
            return self.client_secret_data

        logging.debug(f'Loading client_secret from "{self.client_secret_path}"')
        if not self.client_secret_path.exists():
            msg: str = f'Client secret file not found: {self.client_secret_path}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        try:
            with self.client_secret_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_client_secret(data)
            self.client_secret_data = data
            return self.client_secret_data
        except (ValueError, json.JSONDecodeError) as ex:
            raise status.ClientSecretInvalidException from ex

    def validate_client_secret(self, data=None) -> str:
        """Validate that the client configuration contains the required OAuth fields.

        Args:
            data (dict, optional): Client secret data to validate. Defaults to loaded client_secret_data.

        Returns:
            str: Section key used ('web' or 'installed').

        Raises:
            status.ClientSecretInvalidException: If no valid section exists or required fields are missing.
        """
        if data is None:
            data = self.client_secret_data

        key = next((k for k in ('web', 'installed') if k in data), None)
        if not key:
            raise status.ClientSecretInvalidException('Missing "web" or "installed" section in client_secret.')

        config_section: Dict[str, Any] = data[key]
        missing: List[str] = [k for k in self.required_client_secret_keys if k not in config_section]
        if missing:
            raise status.ClientSecretInvalidException(
                f'Missing required fields in the \'{key}\' section: {missing}.'
            )
        return key

    def has_client_secret(self) -> bool:
        """Return True when the client secret carries a non-empty client id and secret."""
        if not self.client_secret_data:
            return False
        key = next((k for k in ('web', 'installed') if k in self.client_secret_data), None)
        if not key:
            return False
        section = self.client_secret_data[key]
        return bool(section.get('client_id')) and bool(section.get('client_secret'))

    def validate_settings_data(self, data: Dict[str, Any] = None) -> None:
        """Validate settings data against :data:`SETTINGS_SCHEMA`.

        Raises:
            RuntimeError: If data is empty.
            status.SettingsInvalidException: If a required section is missing.
            TypeError, ValueError: If a section fails validation.
        """
        if data is None:
            data = self.settings_data
        if not data:
            raise RuntimeError('Settings data is empty.')

        for field, specs in SETTINGS_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise status.SettingsInvalidException(f'Missing required field: {field}')
            if field not in data:
                continue
            _validate_section(field, data[field], specs['item_schema'])

        logging.debug('Settings data is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of a settings or client_secret section.

        Raises:
            KeyError: If section_name is unknown.
        """
        if section_name == 'client_secret':
            return self.client_secret_data.copy()
        return self.settings_data[section_name].copy()

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace, validate and persist a settings section.

        Raises:
            ValueError: If section_name is unrecognized or new_data fails validation.
            TypeError: If new_data has the wrong types.
        """
        from ..core.actions import signals

        if section_name == 'client_secret':
            self.validate_client_secret(new_data)
            self.client_secret_data = new_data
            self.save_section('client_secret')
            signals.configSectionChanged.emit(section_name)
            return

        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        _validate_section(section_name, new_data, SETTINGS_SCHEMA[section_name]['item_schema'])
        self.settings_data[section_name] = new_data
        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a settings section to its template default and save."""
        from ..core.actions import signals

        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.settings_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        self.settings_data[section_name] = template_data[section_name]
        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single section to its corresponding file."""
        if section_name == 'client_secret':
            logging.debug(f'Saving client_secret to "{self.client_secret_path}"')
            with self.client_secret_path.open('w', encoding='utf-8') as f:
                json.dump(self.client_secret_data, f, indent=4, ensure_ascii=False)
            return

        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.settings_path.open('r', encoding='utf-8') as f:
            original_data: Dict[str, Any] = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.settings_data[section_name]

        with self.settings_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)


settings: SettingsAPI = SettingsAPI()
