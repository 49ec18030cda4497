"""Settings library for the client configuration and durable local storage.

Provides:
    - Schema validation and enforcement for the client.json structure.
    - Loading, saving and reverting configuration sections.
    - LocalStorage: the fixed-key store that survives restarts (credential, theme).
"""

import json
import logging
import os
import pathlib
import shutil
from typing import Any, Dict, Optional, Union

from PySide6 import QtCore

from ..status import status

app_name: str = 'FinWise'

BACKEND_URL_ENV_KEY: str = 'FINWISE_BACKEND_URL'
DEFAULT_BACKEND_URL: str = 'http://localhost:8000'
DEFAULT_TIMEOUT: int = 30

TOKEN_KEY: str = 'token'
THEME_KEY: str = 'theme'
THEMES = ('light', 'dark')

CLIENT_SCHEMA: Dict[str, Any] = {
    'backend': {
        'type': dict,
        'required': True,
        'item_schema': {
            'url': {'type': str, 'required': True},
            'timeout': {'type': (int, float), 'required': True},
        }
    },
}


def _validate_backend(backend_dict: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate the 'backend' section of the client configuration.

    Args:
        backend_dict: The section to validate.
        item_schema: Dict describing required fields and their types.

    Raises:
        TypeError: If the section or a field has the wrong type.
        ValueError: If a required field is missing, the url is empty or the timeout is not positive.
    """
    logging.debug('Validating "backend" section.')
    if not isinstance(backend_dict, dict):
        msg: str = '"backend" must be a dict.'
        logging.error(msg)
        raise TypeError(msg)

    for field, field_specs in item_schema.items():
        if field_specs['required'] and field not in backend_dict:
            msg = f'"backend" missing "{field}".'
            logging.error(msg)
            raise ValueError(msg)
        # bool is an int subclass
        if isinstance(backend_dict[field], bool) or not isinstance(backend_dict[field], field_specs['type']):
            msg = (
                f'"backend" field "{field}" must be {field_specs["type"]}, '
                f'got {type(backend_dict[field])}.'
            )
            logging.error(msg)
            raise TypeError(msg)

    if not backend_dict['url'].strip():
        msg = '"backend" url must not be empty.'
        logging.error(msg)
        raise ValueError(msg)
    if backend_dict['timeout'] <= 0:
        msg = f'"backend" timeout must be positive, got {backend_dict["timeout"]}.'
        logging.error(msg)
        raise ValueError(msg)


class ConfigPaths:
    """Manage application file paths and ensure the default template and directories exist.

    Args:
        root: Optional directory to use instead of the per-user application data location.
    """

    def __init__(self, root: Optional[Union[str, pathlib.Path]] = None) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')

        if root is None:
            p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.StandardLocation.AppDataLocation)
            root = pathlib.Path(p)
        app_data_dir = pathlib.Path(root)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.client_template: pathlib.Path = self.template_dir / 'client.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.client_path: pathlib.Path = self.config_dir / 'client.json'
        self.usersettings_path: pathlib.Path = self.config_dir / 'usersettings.ini'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists, create the config directory and seed client.json.

        Raises:
            FileNotFoundError: If the template directory or file is missing.
        """
        logging.debug(f'Verifying required directories and templates in {self.template_dir}')
        if not self.template_dir.exists():
            msg: str = f'Missing template directory: {self.template_dir}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        if not self.client_template.exists():
            msg = f'Missing client template: {self.client_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        if not self.client_path.exists():
            logging.debug(f'Copying default client config from template to {self.client_path}')
            shutil.copy(self.client_template, self.client_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save the client.json sections.
    """

    def __init__(self, root: Optional[Union[str, pathlib.Path]] = None) -> None:
        super().__init__(root=root)

        self.client_data: Dict[str, Any] = {k: {} for k in CLIENT_SCHEMA}
        self.load_client()

    def load_client(self) -> Dict[str, Any]:
        """Load client.json from disk and validate it against the schema.

        Raises:
            status.ConfigNotFoundError: If client.json is missing.
            status.ConfigInvalidError: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading client config from "{self.client_path}"')
        if not self.client_path.exists():
            logging.error(f'Client config not found: "{self.client_path}"')
            raise status.ConfigNotFoundError(str(self.client_path))

        try:
            with self.client_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_client_data(data)
        except (ValueError, TypeError) as ex:
            logging.error(f'Client config is invalid: {ex}')
            raise status.ConfigInvalidError(str(ex)) from ex

        self.client_data = data
        return self.client_data

    def validate_client_data(self, data: Optional[Dict[str, Any]] = None) -> None:
        """Validate client data against CLIENT_SCHEMA.

        Raises:
            ValueError: If a required section is missing or a section fails validation.
            TypeError: If a section has the wrong type.
        """
        if data is None:
            data = self.client_data

        for field, specs in CLIENT_SCHEMA.items():
            if specs.get('required') and field not in data:
                msg: str = f'Missing required section: "{field}"'
                logging.error(msg)
                raise ValueError(msg)

        _validate_backend(data['backend'], CLIENT_SCHEMA['backend']['item_schema'])

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Return a copy of a configuration section.

        Raises:
            ValueError: If the section name is unknown.
        """
        if section_name not in CLIENT_SCHEMA:
            msg: str = f'Unknown section_name for get: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)
        return dict(self.client_data.get(section_name, {}))

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Validate, store and persist a configuration section.

        The previous value is restored when validation fails.

        Raises:
            ValueError, TypeError: If the section name is unknown or validation fails.
        """
        from ..ui.actions import signals

        if section_name not in CLIENT_SCHEMA:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data = self.client_data.get(section_name)
        self.client_data[section_name] = new_data
        try:
            self.validate_client_data()
        except (ValueError, TypeError) as e:
            logging.error(f'Validation error on set_section("{section_name}"): {e}')
            self.client_data[section_name] = current_section_data
            raise

        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a configuration section to its template default and save.

        Raises:
            ValueError: If section_name is invalid or not present in the template.
        """
        from ..ui.actions import signals

        if section_name not in CLIENT_SCHEMA:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.client_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        if section_name not in template_data:
            msg = f'No template-based revert logic for section "{section_name}".'
            logging.error(msg)
            raise ValueError(msg)

        self.client_data[section_name] = template_data[section_name]
        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single configuration section to client.json."""
        if section_name not in CLIENT_SCHEMA:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        data: Dict[str, Any] = {}
        if self.client_path.exists():
            with self.client_path.open('r', encoding='utf-8') as f:
                data = json.load(f)
        data[section_name] = self.client_data[section_name]

        logging.debug(f'Saving section "{section_name}" to "{self.client_path}"')
        with self.client_path.open('w', encoding='utf-8') as f:
            json.dump(data, f, indent=4, ensure_ascii=False)

    @property
    def backend_url(self) -> str:
        """Base URL of the remote service, without a trailing slash.

        The ``FINWISE_BACKEND_URL`` environment variable takes precedence over client.json.
        """
        url = os.environ.get(BACKEND_URL_ENV_KEY) or self.client_data.get('backend', {}).get('url')
        return (url or DEFAULT_BACKEND_URL).rstrip('/')

    @property
    def timeout(self) -> float:
        """Request timeout in seconds."""
        return self.client_data.get('backend', {}).get('timeout', DEFAULT_TIMEOUT)


class LocalStorage:
    """Durable client-local storage with fixed keys.

    Backed by an INI-format :class:`QtCore.QSettings` file; values survive
    process restarts until explicitly removed.

    Args:
        path: Location of the INI file.
    """

    def __init__(self, path: Union[str, pathlib.Path]) -> None:
        self.path = pathlib.Path(path)
        self._settings = QtCore.QSettings(str(self.path), QtCore.QSettings.Format.IniFormat)

    def get_token(self) -> Optional[str]:
        """Return the persisted credential, or None."""
        self._settings.sync()
        v = self._settings.value(TOKEN_KEY, None)
        return str(v) if v else None

    def set_token(self, token: str) -> None:
        self._settings.setValue(TOKEN_KEY, token)
        self._settings.sync()
        logging.debug(f'Credential saved to {self.path}.')

    def remove_token(self) -> None:
        self._settings.sync()
        if self._settings.contains(TOKEN_KEY):
            self._settings.remove(TOKEN_KEY)
            self._settings.sync()
            logging.debug(f'Credential removed from {self.path}.')
        else:
            logging.debug('No stored credential found. No action taken.')

    def get_theme(self) -> str:
        """Return the persisted theme preference, ``'light'`` unless ``'dark'`` was stored."""
        self._settings.sync()
        v = self._settings.value(THEME_KEY, 'light')
        return 'dark' if v == 'dark' else 'light'

    def set_theme(self, theme: str) -> None:
        """Persist the theme preference and notify listeners.

        Raises:
            ValueError: If theme is not one of THEMES.
        """
        if theme not in THEMES:
            raise ValueError(f'Invalid theme "{theme}", must be one of {THEMES}')

        self._settings.setValue(THEME_KEY, theme)
        self._settings.sync()

        from ..ui.actions import signals
        signals.themeChanged.emit(theme)

    def toggle_theme(self) -> str:
        """Switch between light and dark, returning the new theme."""
        theme = 'light' if self.get_theme() == 'dark' else 'dark'
        self.set_theme(theme)
        return theme
