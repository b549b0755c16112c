"""
Record CRUD against a real SQLite database.
"""
import threading

import dbrecords
import pytest
from dbrecords import IntegrityViolationError, NotFound, QueryError
from dbrecords import StatementTimeout

from tests.fixtures.records import Account, Player, User, UserProfile
from tests.fixtures.sqlite import stage_sqlite_tables

SLOW_SCALAR = """(
    WITH RECURSIVE counter(x) AS (
        SELECT 1 UNION ALL SELECT x + 1 FROM counter WHERE x < 500000000
    )
    SELECT max(x) FROM counter
)"""


def insert_users(session, user_values):
    for name, age in user_values:
        session.create(User(name=name, age=age))


def test_create_update_delete_scenario(sl_session):
    """Create, update and delete a user by its generated id."""
    for i in range(6):
        sl_session.create(User(name=f'filler{i}', age=i))

    user = User(name='Dybala', age=30)
    result = sl_session.create(user)
    assert result.rowcount == 1
    assert result.lastrowid == 7
    assert user.id == 7

    assert sl_session.update(User, {'age': 31}, 'WHERE id = ?', 7) == 1
    assert sl_session.first(User, 'WHERE id = ?', 7) == User(id=7, name='Dybala', age=31)

    assert sl_session.delete(User, 'WHERE id = ?', 7) == 1
    with pytest.raises(NotFound):
        sl_session.first(User, 'WHERE id = ?', 7)


def test_round_trip(sl_session):
    user = User(name='Totti', age=40)
    sl_session.create(user)
    assert sl_session.first(User, 'WHERE id = ?', user.id) == user


def test_session_uses_injected_registry(sl_session, registry):
    assert sl_session.registry is registry
    assert User not in registry
    sl_session.create(User(name='Dybala', age=30))
    assert User in registry


def test_zero_identifier_records_get_generated_ids(sl_session):
    first, second = Player(name='Dybala', age=30), Player(name='Totti', age=40)
    sl_session.create(first)
    sl_session.create(second)
    assert (first.id, second.id) == (1, 2)
    assert sl_session.first(Player, 'WHERE id = ?', 2).name == 'Totti'


def test_explicit_id_kept(sl_session):
    sl_session.create(User(name='Alice', age=25))
    user = User(id=50, name='Dybala', age=30)
    sl_session.create(user)
    assert user.id == 50
    later = User(name='Totti', age=40)
    sl_session.create(later)
    assert later.id == 51


def test_find_returns_all_rows(sl_session, user_values):
    insert_users(sl_session, user_values)
    users = sl_session.find(User)
    assert [(u.name, u.age) for u in users] == user_values
    assert [u.id for u in users] == [1, 2, 3]


def test_find_empty_table(sl_session):
    assert sl_session.find(User) == []


def test_find_into_existing_list(sl_session, user_values):
    insert_users(sl_session, user_values)
    into = [User(name='Already', age=1)]
    assert sl_session.find(User, into) is into
    assert len(into) == 4


def test_first_into_existing_record(sl_session, user_values):
    insert_users(sl_session, user_values)
    into = User(id=99, name='Placeholder', age=99)
    sl_session.first(User, 'WHERE name = ?', 'Bob', into=into)
    assert into == User(id=2, name='Bob', age=17)


def test_update_leaves_other_fields(sl_session, user_values):
    insert_users(sl_session, user_values)
    assert sl_session.update(User, {'name': 'Roberto'}, 'WHERE name = ?', 'Bob') == 1
    assert sl_session.first(User, 'WHERE id = ?', 2) == User(id=2, name='Roberto', age=17)
    assert sl_session.first(User, 'WHERE id = ?', 1) == User(id=1, name='Alice', age=25)


def test_update_no_match_returns_zero(sl_session):
    assert sl_session.update(User, {'age': 1}, 'WHERE id = ?', 404) == 0


def test_update_without_values(sl_session):
    with pytest.raises(QueryError):
        sl_session.update(User, {}, 'WHERE id = ?', 1)


def test_delete_with_where(sl_session, user_values):
    insert_users(sl_session, user_values)
    assert sl_session.delete(User, 'WHERE age < ?', 21) == 2
    assert [u.name for u in sl_session.find(User)] == ['Alice']


def test_partial_insert_uses_column_defaults(sl_session):
    account = Account(owner=None)
    sl_session.create(account)
    assert account.account_no == 1
    assert account.assigned == [1]
    assert sl_session.first(Account, 'WHERE account_no = ?', 1).owner == 'nobody'


def test_annotated_columns_round_trip(sl_session):
    profile = UserProfile(UserName='pdybala', email='p@example.com', session_token='secret')
    sl_session.create(profile)
    stored = sl_session.first(UserProfile, 'WHERE email_address = ?', 'p@example.com')
    assert stored.id == profile.id == 1
    assert stored.UserName == 'pdybala'
    assert stored.session_token == ''


def test_update_by_field_name(sl_session):
    sl_session.create(UserProfile(UserName='pd', email='old@example.com'))
    sl_session.update(UserProfile, {'email': 'new@example.com'}, 'WHERE id = ?', 1)
    assert sl_session.first(UserProfile).email == 'new@example.com'


def test_constraint_violation(sl_session):
    sl_session.create(UserProfile(UserName='a', email='same@example.com'))
    with pytest.raises(IntegrityViolationError):
        sl_session.create(UserProfile(UserName='b', email='same@example.com'))


def test_missing_table(sl_session):
    with pytest.raises(QueryError, match='no such table'):
        sl_session.raw_query('SELECT * FROM nowhere')


class TestQueryBuilder:

    def test_where_find(self, sl_session, user_values):
        insert_users(sl_session, user_values)
        adults = sl_session.model(User).where('age >= ?', 18).find()
        assert [u.name for u in adults] == ['Alice', 'Charlie']

    def test_chained_where(self, sl_session, user_values):
        insert_users(sl_session, user_values)
        users = sl_session.model(User).where('age >= ?', 18).where('name LIKE ?', 'C%').find()
        assert users == [User(id=3, name='Charlie', age=20)]

    def test_first(self, sl_session, user_values):
        insert_users(sl_session, user_values)
        assert sl_session.model(User).where('age < ?', 18).first().name == 'Bob'

    def test_first_not_found(self, sl_session):
        with pytest.raises(NotFound):
            sl_session.model(User).where('age > ?', 200).first()

    def test_create(self, sl_session):
        user = User(name='Dybala', age=30)
        sl_session.model(User).create(user)
        assert user.id == 1

    def test_module_facade(self, sl_session, user_values):
        insert_users(sl_session, user_values)
        assert len(dbrecords.model(sl_session, User).where('age > ?', 18).find()) == 2
        assert dbrecords.first(sl_session, User, 'WHERE name = ?', 'Alice').age == 25
        assert dbrecords.update(sl_session, User, {'age': 26}, 'WHERE name = ?', 'Alice') == 1
        assert dbrecords.delete(sl_session, User, 'WHERE name = ?', 'Bob') == 1
        assert len(dbrecords.find(sl_session, User)) == 2
        dbrecords.create(sl_session, User(name='Dybala', age=30))
        with dbrecords.raw_query(sl_session, 'SELECT count(*) FROM users') as cursor:
            assert cursor.fetchone() == (3,)


class TestRawQueries:

    def test_raw_query_cursor(self, sl_session, user_values):
        insert_users(sl_session, user_values)
        with sl_session.raw_query('SELECT name, age FROM users WHERE age > ? ORDER BY age',
                                  18) as cursor:
            assert cursor.columns == ['name', 'age']
            assert list(cursor) == [('Charlie', 20), ('Alice', 25)]

    def test_raw_query_with_deadline_returns_rows(self, sl_session, user_values):
        insert_users(sl_session, user_values)
        cursor = sl_session.raw_query_with_deadline('SELECT name FROM users ORDER BY id',
                                                    timeout=5)
        assert [row[0] for row in cursor] == ['Alice', 'Bob', 'Charlie']
        assert cursor.closed

    def test_raw_query_with_deadline_times_out(self, sl_session):
        with pytest.raises(StatementTimeout):
            sl_session.raw_query_with_deadline(f'SELECT {SLOW_SCALAR}', timeout=0.05)
        # the connection is usable once the statement has been cancelled
        with sl_session.raw_query('SELECT 1') as cursor:
            assert cursor.fetchone() == (1,)

    def test_write_timeout_cancels_update(self, registry):
        with dbrecords.open(drivername='sqlite', database=':memory:',
                            write_timeout=0.05, registry=registry) as session:
            stage_sqlite_tables(session)
            session.create(User(name='Dybala', age=30))
            with pytest.raises(StatementTimeout):
                session.update(User, {'age': 31}, f'WHERE id < {SLOW_SCALAR}')
            assert session.first(User).age == 30

    def test_statement_counts(self, sl_session):
        calls = sl_session.database.calls
        sl_session.find(User)
        assert sl_session.database.calls == calls + 1


def test_ping(sl_session):
    sl_session.ping()


def test_file_database_persists(sl_file_session, registry):
    sl_file_session.create(User(name='Dybala', age=30))
    options = sl_file_session.database.options
    with dbrecords.open(options, registry=registry) as other:
        assert other.first(User, 'WHERE name = ?', 'Dybala').age == 30


def test_concurrent_creates(sl_file_session):
    errors = []

    def worker(n):
        try:
            for i in range(10):
                sl_file_session.create(User(name=f'worker{n}-{i}', age=i))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    users = sl_file_session.find(User)
    assert len(users) == 40
    assert len({u.id for u in users}) == 40


if __name__ == '__main__':
    __import__('pytest').main([__file__])
