"""
End-to-end behaviour over the user table: age int, name text, weight real.
"""
import pytest
import sqlite_typed as db
from sqlite_typed import Kind, Nullable
from sqlite_typed.types import INT32_MAX, INT64_MAX, INT64_MIN

pytestmark = pytest.mark.sqlite


def test_count_as_integer_and_text(user_conn):
    assert user_conn.collect('select count(*) from user', (), int) == 2
    assert user_conn.collect('select count(*) from user', (), str) == '2'


def test_prepared_insert_inside_transaction(cn):
    cn.execute('create table user(age int, name text, weight real)')
    cn.execute('begin')
    with cn.prepare('insert into user(age, name, weight) values(?, ?, ?)') as st:
        for age in range(10):
            st.execute((age, f'user{age}', 50.0 + age))
    cn.execute('commit')
    assert cn.collect('select sum(age) from user', (), int) == 45


def test_rollback_restores_rows(cn):
    cn.execute('create table user(age int, name text, weight real)')
    with cn.prepare('insert into user(age, name, weight) values(?, ?, ?)') as st:
        for age in range(10):
            st.execute((age, f'user{age}', 50.0))
    before = cn.collect('select sum(age) from user', (), int)

    cn.execute('begin')
    assert cn.execute('delete from user where age > ?', 3) == 6
    assert cn.collect('select sum(age) from user', (), int) == 6
    cn.execute('rollback')

    assert cn.collect('select sum(age) from user', (), int) == before == 45


@pytest.mark.parametrize('kind', list(Kind))
def test_null_collects_as_none_or_zero(cn, kind):
    zero = {Kind.INT32: 0, Kind.INT64: 0, Kind.DOUBLE: 0.0, Kind.TEXT: '', Kind.BYTES: b''}
    assert cn.collect('select ?', None, Nullable(kind)) is None
    assert cn.collect('select ?', None, kind) == zero[kind]


@pytest.mark.parametrize('n', [0, 7, -7, 1000000, INT32_MAX + 1, INT64_MAX, INT64_MIN])
def test_integer_collects_as_decimal_text(cn, n):
    assert cn.collect('select ?', n, str) == str(n)


@pytest.mark.parametrize('blob', [
    b'',
    b'\x00',
    b'a\x00b\x00',
    b'\xff\xfe\xfd',
    bytes(range(256)),
    'négar'.encode(),
])
def test_blob_round_trip(cn, blob):
    assert cn.collect('select ?', blob, bytes) == blob
    cn.execute('create table b(data blob)')
    cn.execute('insert into b(data) values(?)', blob)
    assert cn.collect('select data from b', (), bytes) == blob


def test_text_round_trip(cn):
    cn.execute('create table t(s text)')
    cn.execute('insert into t(s) values(?)', 'négar 🙂')
    assert cn.collect('select s from t', (), str) == 'négar 🙂'
    assert cn.collect('select s from t', (), bytes) == 'négar 🙂'.encode()


def test_invalid_utf8_text_decodes_without_error(cn):
    assert cn.collect("select cast(x'ff41' as text)", (), str) == '\udcffA'


def test_prepared_reuse_matches_one_shot(user_conn):
    with user_conn.transaction():
        for age in range(30, 40):
            user_conn.execute('insert into user(age, name, weight) values(?, ?, ?)',
                              (age, f'user{age}', age / 3))

    sql = 'select name, weight, age from user where age >= ? order by age limit 2'
    kinds = (str, float, int)
    with user_conn.transaction():
        with user_conn.prepare(sql) as st:
            reused = [st.collect(age, kinds) for age in range(25, 41)]
        one_shot = [user_conn.collect(sql, age, kinds) for age in range(25, 41)]
    assert reused == one_shot
    assert reused[0] == ('negar', 61.0, 26)
    assert reused[-1] == ('', 0.0, 0)


def test_reuse_for_each_across_cycles(user_conn):
    with user_conn.prepare('select age from user where age > ? order by age') as st:
        results = []
        for floor in (0, 27, 0):
            seen = []
            st.for_each(floor, seen.append, int)
            results.append(seen)
    assert results == [[26, 29], [29], [26, 29]]


def test_begin_commit_are_plain_statements(db_path):
    with db.connect(db_path) as cn:
        cn.execute('begin')
        assert cn.in_transaction
        cn.execute('insert into user(age, name, weight) values(?, ?, ?)', (40, 'kim', 70.0))
        with db.connect(db_path) as other:
            assert other.collect('select count(*) from user', (), int) == 2
        cn.execute('commit')
        assert not cn.in_transaction
    with db.connect(db_path) as cn:
        assert cn.collect('select count(*) from user', (), int) == 3


if __name__ == '__main__':
    __import__('pytest').main([__file__])
