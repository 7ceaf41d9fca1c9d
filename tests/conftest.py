import pytest
import sqlite_typed as db


@pytest.fixture
def cn():
    """Empty in-memory database"""
    conn = db.connect(':memory:')
    yield conn
    conn.close()


@pytest.fixture
def user_conn(cn):
    """In-memory database with a populated user table"""
    cn.execute('create table user(age int, name text, weight real)')
    with cn.prepare('insert into user(age, name, weight) values(?, ?, ?)') as st:
        st.execute((29, 'amin', 69.5))
        st.execute((26, 'negar', 61.0))
    yield cn


@pytest.fixture
def db_path(tmp_path):
    """Path of a file database holding the user table"""
    path = tmp_path / 'users.db'
    with db.connect(path) as conn:
        conn.execute('create table user(age int, name text, weight real)')
        conn.execute('insert into user(age, name, weight) values(?, ?, ?)', (29, 'amin', 69.5))
        conn.execute('insert into user(age, name, weight) values(?, ?, ?)', (26, 'negar', 61.0))
    return path
