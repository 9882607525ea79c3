"""Schema v2 - Wishlist visibility and catalog status index.

This version adds:
- is_public and updated_at columns to wishlists
- an index on items.status used by the catalog browse filter
"""
import copy

from .v1 import schema as v1_schema

_tables = copy.deepcopy(v1_schema['tables'])

for _table in _tables:
    if _table['name'] == 'wishlists':
        _table['columns'][3:3] = [
            {'name': 'is_public', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'}
        ]
        _table['columns'].append(
            {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
        )
    elif _table['name'] == 'items':
        _table['indexes'].append({'name': 'idx_items_status', 'columns': ['status']})

schema = {
    'version': 2,
    'tables': _tables,
    'migrations': [
        '''
        ALTER TABLE wishlists
        ADD COLUMN IF NOT EXISTS is_public BOOLEAN NOT NULL DEFAULT false,
        ADD COLUMN IF NOT EXISTS updated_at TIMESTAMP NOT NULL DEFAULT now();
        ''',
        'CREATE INDEX IF NOT EXISTS idx_items_status ON items(status);'
    ]
}
