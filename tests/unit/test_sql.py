"""Unit tests for identifier quoting and DML generation.

Tests the public API:
- quote_identifier(name, dialect) - Idempotent dialect quoting
- quote_table(table, schema, escape) - Schema-qualified names
- build_insert_sql / build_update_sql - Positional DML
- build_on_conflict_upsert / build_duplicate_key_upsert / build_merge_upsert
"""
import functools

import pytest
from dbrecord.sql import build_duplicate_key_upsert, build_insert_sql, build_merge_upsert
from dbrecord.sql import build_on_conflict_upsert, build_update_sql, quote_identifier
from dbrecord.sql import quote_table

escape = functools.partial(quote_identifier, dialect='postgresql')
mysql_escape = functools.partial(quote_identifier, dialect='mysql')


class TestQuoteIdentifier:
    """Quoting is a pure, idempotent string transform."""

    @pytest.mark.parametrize(('identifier', 'dialect', 'expected'), [
        ('users', 'postgresql', '"users"'),
        ('user"s', 'postgresql', '"user""s"'),
        ('users', 'mysql', '`users`'),
        ('users', 'sqlserver', '[users]'),
        ('My Table', 'oracle', '"My Table"'),
    ], ids=['pg', 'pg_embedded_quote', 'mysql', 'sqlserver', 'oracle_spaces'])
    def test_quote(self, identifier, dialect, expected):
        assert quote_identifier(identifier, dialect) == expected

    @pytest.mark.parametrize(('identifier', 'dialect'), [
        ('users', 'postgresql'),
        ('user"s', 'postgresql'),
        ('a]b', 'sqlserver'),
        ('a`b', 'mysql'),
    ])
    def test_idempotent(self, identifier, dialect):
        once = quote_identifier(identifier, dialect)
        assert quote_identifier(once, dialect) == once

    def test_half_quoted_is_quoted_again(self):
        assert quote_identifier('"a"b"') == '"""a""b"""'

    def test_empty_identifier(self):
        with pytest.raises(ValueError):
            quote_identifier('')

    def test_quote_table(self):
        assert quote_table('users', None, escape) == '"users"'
        assert quote_table('users', 'sales', escape) == '"sales"."users"'


class TestDml:
    """Statement text binds every column positionally."""

    def test_insert(self):
        sql = build_insert_sql('"users"', ['id', 'name'], escape, '%s')
        assert sql == 'INSERT INTO "users" ("id", "name") VALUES (%s, %s)'

    def test_update(self):
        sql = build_update_sql('"users"', ['id', 'name'], ['id'], escape)
        assert sql == 'UPDATE "users" SET "id" = ?, "name" = ? WHERE "id" = ?'

    def test_update_requires_keys(self):
        with pytest.raises(ValueError, match='key field'):
            build_update_sql('"users"', ['id'], [], escape)

    def test_on_conflict(self):
        sql = build_on_conflict_upsert('"users"', ['id', 'name', 'score'], ['id'], escape)
        assert sql == ('INSERT INTO "users" ("id", "name", "score") VALUES (?, ?, ?) '
                       'ON CONFLICT ("id") DO UPDATE SET "name" = excluded."name", '
                       '"score" = excluded."score"')

    def test_on_conflict_keys_only(self):
        sql = build_on_conflict_upsert('"tags"', ['id'], ['id'], escape)
        assert sql.endswith('ON CONFLICT ("id") DO NOTHING')

    def test_duplicate_key(self):
        sql = build_duplicate_key_upsert('`users`', ['id', 'name'], ['id'], mysql_escape)
        assert sql == ('INSERT INTO `users` (`id`, `name`) VALUES (%s, %s) '
                       'ON DUPLICATE KEY UPDATE `name` = VALUES(`name`)')

    def test_merge(self):
        sql = build_merge_upsert('"users"', ['id', 'name'], ['id'], escape,
                                 source_suffix=' FROM DUAL')
        assert sql == ('MERGE INTO "users" t USING (SELECT ? AS "id", ? AS "name" FROM DUAL) s '
                       'ON (t."id" = s."id") '
                       'WHEN MATCHED THEN UPDATE SET t."name" = s."name" '
                       'WHEN NOT MATCHED THEN INSERT ("id", "name") VALUES (s."id", s."name")')

    def test_merge_keys_only(self):
        sql = build_merge_upsert('"tags"', ['id'], ['id'], escape)
        assert 'WHEN MATCHED' not in sql


if __name__ == '__main__':
    __import__('pytest').main([__file__])
