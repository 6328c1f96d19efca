"""
Entry points, stored routines and timeouts against PostgreSQL.
"""
import queryjson as qj
import pytest

pytestmark = pytest.mark.postgres

ALL_MONSTERS = 'select * from "SimpleMonsters" order by "Id"'


def count_monsters(cn):
    return qj.query_first(cn, 'select count(*) as n from "SimpleMonsters"').n


def test_query_to_array(pg_conn, monster_names):
    array = qj.query_to_array(pg_conn, ALL_MONSTERS)
    assert [o['Name'] for o in array] == monster_names
    assert array[1] == {'Id': 2, 'Name': 'Flint', 'ScarySound': 'ooooooo!', 'Habitat': 'Shadows'}


def test_two_named_monsters(pg_conn):
    sql = 'select "Name" from "SimpleMonsters" where "Name" in @Names order by "Id"'
    result = qj.query_to_json_string(pg_conn, sql, {'Names': ['Flint', 'Boo']})
    assert result == '[{"Name":"Flint"},{"Name":"Boo"}]'


def test_bson_paths_agree(pg_conn):
    data = qj.query_to_bson_bytes(pg_conn, ALL_MONSTERS)
    assert qj.read_bson_array(data) == qj.query_to_array(pg_conn, ALL_MONSTERS)
    assert qj.read_bson_array(qj.query_to_bson_stream(pg_conn, ALL_MONSTERS)) == \
        qj.read_bson_array(data)


def test_first_row(pg_conn):
    sql = 'select "Name", "Habitat" from "SimpleMonsters" where "Name" = @Name'
    data = qj.query_first_to_bson_bytes(pg_conn, sql, {'Name': 'Boo'})
    assert qj.read_bson_object(data) == {'Name': 'Boo', 'Habitat': None}
    with pytest.raises(qj.RowNotFoundError):
        qj.query_first_to_json_string(pg_conn, sql, {'Name': 'Nobody'})


def test_type_mapping(pg_conn):
    """Test driver types map to JSON values."""
    sql = """
    select
        1.50::numeric as price,
        10::numeric as count,
        date '2024-01-02' as day,
        '\\x00ff'::bytea as data,
        interval '90 seconds' as span,
        '{"alias": "Sully"}'::jsonb as extra,
        array['Sully', 'Kitty'] as aliases
    """
    assert qj.query_first_object(pg_conn, sql) == {
        'price': 1.5,
        'count': 10,
        'day': '2024-01-02',
        'data': 'AP8=',
        'span': 90.0,
        'extra': {'alias': 'Sully'},
        'aliases': ['Sully', 'Kitty'],
    }


def test_stored_function(pg_conn):
    """Test a set-returning function is called with named arguments."""
    array = qj.query_to_array(pg_conn, 'monsters_by_habitat', {'habitat': 'Hawaii'},
                              command_type=qj.CommandType.STORED_PROCEDURE)
    assert array == [{'Id': 5, 'Name': 'James P. Sullivan', 'ScarySound': 'blah blah',
                      'Habitat': 'Hawaii'}]


def test_stored_procedure(pg_conn):
    qj.execute(pg_conn, 'insert_monster', {'monster_name': 'Baloo'},
               command_type=qj.CommandType.STORED_PROCEDURE)
    assert count_monsters(pg_conn) == 11


def test_timeout(pg_conn):
    """Test statements running past their timeout are cancelled."""
    with pytest.raises(qj.OperationalError):
        qj.query_to_array(pg_conn, 'select pg_sleep(5)', timeout=0.2)
    assert qj.query_to_array(pg_conn, 'select 1 as one', timeout=5) == [{'one': 1}]


def test_unbuffered(pg_conn, monster_names):
    objects = qj.query_to_objects(pg_conn, ALL_MONSTERS, buffered=False)
    assert [o['Name'] for o in objects] == monster_names


def test_transaction_rollback(pg_conn):
    with pytest.raises(RuntimeError), pg_conn.transaction() as tx:
        tx.execute('delete from "MonsterAliases"')
        tx.execute('delete from "SimpleMonsters"')
        assert tx.query_to_array(ALL_MONSTERS) == []
        raise RuntimeError('abort')
    assert count_monsters(pg_conn) == 10


def test_cast_not_treated_as_parameter(pg_conn):
    sql = 'select "Id"::text as id from "SimpleMonsters" where "Name" = @Name'
    assert qj.query_first_object(pg_conn, sql, {'Name': 'Boo'}) == {'id': '7'}
