"""Schema v1 - Initial database schema.

This version includes tables for:
- Users and roles
- Item listings
- Orders and their line items
- Wishlists and wishlist entries
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'users',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'email', 'type': 'TEXT', 'nullable': False, 'unique': True},
                {'name': 'password_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'role', 'type': 'TEXT', 'nullable': False, 'default': "'USER'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                {'name': 'chk_users_role', 'expression': "role IN ('USER', 'ADMIN')"}
            ]
        },
        {
            'name': 'items',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False},
                {'name': 'price', 'type': 'NUMERIC(10, 2)', 'nullable': False},
                {'name': 'size', 'type': 'TEXT', 'nullable': False},
                {'name': 'condition', 'type': 'TEXT', 'nullable': False},
                {'name': 'category', 'type': 'TEXT', 'nullable': False},
                {'name': 'photo_url', 'type': 'TEXT', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'available'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                {'name': 'chk_items_price', 'expression': 'price > 0'},
                {'name': 'chk_items_status', 'expression': "status IN ('available', 'reserved', 'sold')"}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_items_user', 'columns': ['user_id']},
                {'name': 'idx_items_created', 'columns': ['created_at']}
            ]
        },
        {
            'name': 'orders',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'total', 'type': 'NUMERIC(12, 2)', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                {'name': 'chk_orders_status',
                 'expression': "status IN ('pending', 'processing', 'completed', 'cancelled')"}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_orders_user', 'columns': ['user_id']},
                {'name': 'idx_orders_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'order_items',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'order_id', 'type': 'UUID', 'nullable': False},
                {'name': 'item_id', 'type': 'UUID', 'nullable': False},
                {'name': 'quantity', 'type': 'INT8', 'nullable': False, 'default': '1'},
                {'name': 'price', 'type': 'NUMERIC(10, 2)', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                {'name': 'chk_order_items_quantity', 'expression': 'quantity >= 1'}
            ],
            'foreign_keys': [
                {'columns': ['order_id'], 'references': 'orders(id)', 'on_delete': 'CASCADE'},
                {'columns': ['item_id'], 'references': 'items(id)', 'on_delete': 'RESTRICT'}
            ],
            'indexes': [
                {'name': 'idx_order_items_order', 'columns': ['order_id']},
                {'name': 'idx_order_items_item', 'columns': ['item_id']}
            ]
        },
        {
            'name': 'wishlists',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'name', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_wishlists_user', 'columns': ['user_id']}
            ]
        },
        {
            'name': 'wishlist_items',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'wishlist_id', 'type': 'UUID', 'nullable': False},
                {'name': 'item_id', 'type': 'UUID', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['wishlist_id'], 'references': 'wishlists(id)', 'on_delete': 'CASCADE'},
                {'columns': ['item_id'], 'references': 'items(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_wishlist_items_pair', 'columns': ['wishlist_id', 'item_id'], 'unique': True}
            ]
        }
    ]
}
