"""Settings library for the sync configuration.

Provides:
    - Schema validation and enforcement for the sync.json structure.
    - Loading, saving, reverting, and managing application settings.
    - Constants for editable and read-only order line fields.
"""

import json
import logging
import pathlib
import re
import shutil
from typing import Dict, Any, Optional, List

from PySide6 import QtCore

from ..status import status

app_name: str = 'FulfillmentSync'

# Editable order line fields and their value kind
EDITABLE_FIELDS: Dict[str, str] = {
    'import_qty': 'int',
    'cancel_qty': 'int',
    'export_qty': 'int',
    'note': 'string',
}

READONLY_FIELDS: List[str] = [
    'product_name',
    'option_name',
    'img_url',
    'order_qty',
    'delivery_status',
]

FIELD_TYPES: List[str] = ['string', 'int']

COLUMN_PATTERN = re.compile(r'[A-Z]{1,3}')

SYNC_SCHEMA: Dict[str, Any] = {
    'spreadsheet': {
        'type': dict,
        'required': True,
        'item_schema': {
            'id': {'type': str, 'required': True},
            'worksheet': {'type': str, 'required': True},
        }
    },
    'columns': {
        'type': dict,
        'required': True,
        'allowed_keys': list(EDITABLE_FIELDS),
        'value_type': str,
    },
    'layout': {
        'type': dict,
        'required': True,
        'item_schema': {
            'order_number': {'type': str, 'required': True, 'format': 'column'},
            'barcode': {'type': str, 'required': True, 'format': 'column'},
            'header_rows': {'type': int, 'required': True},
            'key_separator': {'type': str, 'required': True},
            'fields': {'type': dict, 'required': True},
        }
    },
    'transport': {
        'type': dict,
        'required': True,
        'item_schema': {
            'timeout': {'type': int, 'required': True},
            'credentials': {'type': str, 'required': True},
        }
    },
    'editor': {
        'type': dict,
        'required': True,
        'item_schema': {
            'debounce_ms': {'type': int, 'required': True},
        }
    },
}


def is_valid_column(value: str) -> bool:
    """Check if a string is a spreadsheet column in A1 letter notation (e.g. N, AB).

    Args:
        value (str): Column letters to validate.

    Returns:
        bool: True if value is one to three uppercase letters.
    """
    return bool(COLUMN_PATTERN.fullmatch(value))


def _validate_columns(columns_dict: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate the 'columns' section, the field to column mapping used for writes.

    Args:
        columns_dict: Mapping of editable field names to column letters.
        specs: Schema dict containing 'allowed_keys' and 'value_type'.

    Raises:
        ValueError: If a key is not an editable field, a column is malformed, or a column is used twice.
        TypeError: If a mapping value is not a string.
    """
    logging.debug('Validating "columns" section.')
    allowed = set(specs['allowed_keys'])
    seen: Dict[str, str] = {}
    for field, column in columns_dict.items():
        if field not in allowed:
            msg: str = f'Column mapping key "{field}" is not an editable field, must be one of {sorted(allowed)}.'
            logging.error(msg)
            raise ValueError(msg)
        if not isinstance(column, specs['value_type']):
            msg = f'Column for "{field}" must be a string, got {type(column)}.'
            logging.error(msg)
            raise TypeError(msg)
        if not is_valid_column(column):
            msg = f'Column "{column}" for "{field}" is not a valid column letter.'
            logging.error(msg)
            raise ValueError(msg)
        if column in seen:
            msg = f'Column "{column}" is mapped to both "{seen[column]}" and "{field}".'
            logging.error(msg)
            raise ValueError(msg)
        seen[column] = field


def _validate_items(section: str, data: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate a fixed-key section against its item schema.

    Args:
        section: Section name, used in messages.
        data: Section data.
        item_schema: Mapping of key to {'type', 'required', optional 'format'}.

    Raises:
        ValueError: If a required key is missing or a formatted value is malformed.
        TypeError: If a value has the wrong type.
    """
    logging.debug(f'Validating "{section}" section.')
    for key, specs in item_schema.items():
        if key not in data:
            if specs.get('required'):
                msg: str = f'"{section}" is missing required key "{key}".'
                logging.error(msg)
                raise ValueError(msg)
            continue
        value = data[key]
        # bool is an int subclass, never accept it for numbers
        if not isinstance(value, specs['type']) or (specs['type'] is int and isinstance(value, bool)):
            msg = f'"{section}.{key}" must be {specs["type"].__name__}, got {type(value).__name__}.'
            logging.error(msg)
            raise TypeError(msg)
        if specs.get('format') == 'column' and not is_valid_column(value):
            msg = f'"{section}.{key}" is not a valid column letter: "{value}".'
            logging.error(msg)
            raise ValueError(msg)


def _validate_layout(layout_dict: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate the 'layout' section describing how order rows are read.

    Raises:
        ValueError: If the key separator is empty, header_rows is negative or a field column is invalid.
        TypeError: If a value has the wrong type.
    """
    _validate_items('layout', layout_dict, item_schema)

    if not layout_dict['key_separator']:
        raise ValueError('"layout.key_separator" must not be empty.')
    if layout_dict['header_rows'] < 0:
        raise ValueError('"layout.header_rows" must not be negative.')

    known = set(EDITABLE_FIELDS) | set(READONLY_FIELDS)
    for field, column in layout_dict['fields'].items():
        if field not in known:
            raise ValueError(f'"layout.fields" references unknown field "{field}".')
        if not isinstance(column, str) or not is_valid_column(column):
            raise ValueError(f'"layout.fields.{field}" is not a valid column letter: "{column}".')


class ConfigPaths:
    """Manage application file paths and ensure the default template is in place.

    The sync template ships inside the package. On first run it is copied into
    the user's application data directory, where it can be edited.
    """

    def __init__(self) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')
        logging.debug(f'Setting application name: {app_name}')

        p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
        app_data_dir = pathlib.Path(p)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.sync_template: pathlib.Path = self.template_dir / 'sync.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.auth_dir: pathlib.Path = self.config_dir / 'auth'

        self.sync_path: pathlib.Path = self.config_dir / 'sync.json'
        self.creds_path: pathlib.Path = self.auth_dir / 'service_account.json'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists and prepare the configuration directories.

        Raises:
            FileNotFoundError: If the template directory or file is missing.
        """
        logging.debug(f'Verifying required directories and templates in {self.template_dir}')
        if not self.template_dir.exists():
            msg: str = f'Missing template directory: {self.template_dir}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        if not self.sync_template.exists():
            msg = f'Missing sync template: {self.sync_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        if not self.auth_dir.exists():
            logging.debug(f'Creating auth directory: {self.auth_dir}')
            self.auth_dir.mkdir(parents=True, exist_ok=True)

        if not self.sync_path.exists():
            logging.debug(f'Copying default sync config from template to {self.sync_path}')
            shutil.copy(self.sync_template, self.sync_path)

    def revert_sync_to_template(self) -> None:
        """Restore sync.json from the default template file.

        Raises:
            FileNotFoundError: If the template file is missing.
        """
        logging.debug(f'Reverting sync config to template: {self.sync_template}')
        if not self.sync_template.exists():
            msg: str = f'Sync template not found: {self.sync_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        shutil.copy(self.sync_template, self.sync_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save sync.json sections.
    """

    def __init__(self, sync_path: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load the sync configuration.

        Args:
            sync_path: Optional path to a custom sync.json file.
        """
        super().__init__()

        self.sync_path: pathlib.Path = pathlib.Path(sync_path) if sync_path else self.sync_path

        self.sync_data: Dict[str, Any] = {}
        for k in SYNC_SCHEMA.keys():
            self.sync_data[k] = {}

        self.load_sync()

    @property
    def credentials_path(self) -> pathlib.Path:
        """The service account key file, from settings or the default auth location."""
        configured: str = self.sync_data.get('transport', {}).get('credentials', '')
        return pathlib.Path(configured) if configured else self.creds_path

    def load_sync(self) -> Dict[str, Any]:
        """Load sync.json from disk and validate against schema.

        Returns:
            The loaded configuration dictionary.

        Raises:
            status.SyncConfigNotFoundException: If sync.json file is missing.
            status.SyncConfigInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading sync config from "{self.sync_path}"')
        if not self.sync_path.exists():
            raise status.SyncConfigNotFoundException

        try:
            with self.sync_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_sync_data(data=data)
            self.sync_data = data
            return self.sync_data

        except (ValueError, TypeError, RuntimeError) as ex:
            raise status.SyncConfigInvalidException(str(ex)) from ex

    def validate_sync_data(self, data: Dict[str, Any] = None) -> None:
        """Validate configuration data against the defined SYNC_SCHEMA.

        Args:
            data (dict, optional): Data to validate. Defaults to self.sync_data.

        Raises:
            RuntimeError: If data is empty.
            ValueError, TypeError: If a section is missing or validation fails.
        """
        if data is None:
            data = self.sync_data
        if not data:
            raise RuntimeError('Sync config data is empty.')

        logging.debug('Validating sync config against schema.')
        for field, specs in SYNC_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise ValueError(f'Missing required section: {field}')

            if field not in data:
                continue

            if not isinstance(data[field], specs['type']):
                raise TypeError(f'Section "{field}" must be {specs["type"].__name__}, got {type(data[field]).__name__}.')

            if field == 'columns':
                _validate_columns(data[field], specs)
            elif field == 'layout':
                _validate_layout(data[field], specs['item_schema'])
            else:
                _validate_items(field, data[field], specs['item_schema'])

        if data['transport']['timeout'] <= 0:
            raise ValueError('"transport.timeout" must be a positive number of seconds.')
        if data['editor']['debounce_ms'] < 0:
            raise ValueError('"editor.debounce_ms" must not be negative.')

        logging.debug('Sync config is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of a configuration section.

        Raises:
            KeyError: If section_name is not in the configuration.
        """
        return self.sync_data[section_name].copy()

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace and persist a configuration section.

        The previous section is restored if the new data fails validation.

        Args:
            section_name: Section to update.
            new_data: New data dict for the section.

        Raises:
            ValueError: If section_name is unrecognized or new_data is invalid.
            TypeError: If new_data contains values of the wrong type.
        """
        from ..signals import signals

        if section_name not in self.sync_data:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data: Dict[str, Any] = self.sync_data.get(section_name).copy()

        self.sync_data[section_name] = new_data
        try:
            self.validate_sync_data()
            self.save_section(section_name)
            signals.configSectionChanged.emit(section_name)

        except (ValueError, TypeError) as e:
            logging.error(f'Validation error on set_section("{section_name}"): {e}')
            self.sync_data[section_name] = current_section_data
            raise

    def reload_section(self, section_name: str) -> None:
        """Reload a configuration section from disk and emit the change signal.

        Raises:
            ValueError: If section_name is unrecognized or the file fails validation.
            JSONDecodeError: If parsing sync.json fails.
        """
        from ..signals import signals

        if section_name not in self.sync_data:
            msg: str = f'Unknown section_name for reload: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        logging.debug(f'Reloading section "{section_name}" from disk.')
        try:
            with self.sync_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_sync_data(data=data)
            self.sync_data[section_name] = data[section_name]

            signals.configSectionChanged.emit(section_name)

        except (ValueError, TypeError, json.JSONDecodeError) as e:
            logging.error(f'Failed to reload section "{section_name}": {e}')
            raise

    def revert_section(self, section_name: str) -> None:
        """Revert a configuration section to its template default and save.

        Raises:
            ValueError: If section_name is invalid or not present in the template.
        """
        from ..signals import signals

        if section_name not in self.sync_data:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.sync_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        if section_name not in template_data:
            msg = f'No template-based revert logic for section "{section_name}".'
            logging.error(msg)
            raise ValueError(msg)

        self.sync_data[section_name] = template_data[section_name]
        self.save_section(section_name)

        signals.configSectionChanged.emit(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single configuration section to sync.json.

        Raises:
            ValueError: If section_name is not recognized.
        """
        if section_name not in self.sync_data:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.sync_path.open('r', encoding='utf-8') as f:
            original_data: Dict[str, Any] = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.sync_data[section_name]

        with self.sync_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)

    def save_all(self) -> None:
        """Validate and save the whole configuration, with rollback on failure.

        Raises:
            ValueError, TypeError: On validation failure.
        """
        logging.debug('Saving all settings.')
        original_data: Dict[str, Any] = dict(self.sync_data)
        try:
            self.validate_sync_data()
            with self.sync_path.open('w', encoding='utf-8') as f:
                json.dump(self.sync_data, f, indent=4, ensure_ascii=False)
        except (ValueError, TypeError) as e:
            logging.error(f'Failed to save sync config: {e}. Rolling back.')
            self.sync_data = original_data
            raise


settings: SettingsAPI = SettingsAPI()
