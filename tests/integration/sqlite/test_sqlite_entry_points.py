"""
Every query_to_* and query_first_* entry point against seeded SQLite monsters.
"""
import base64
import io

import queryjson as qj
import pytest

ALL_MONSTERS = 'SELECT * FROM SimpleMonsters ORDER BY Id'
MONSTER_BY_NAME = 'SELECT Name, Habitat FROM SimpleMonsters WHERE Name = @Name'


def upper_strings(value):
    return value.upper() if isinstance(value, str) else value


class TestMultiRow:
    """Test the multi-row entry points."""

    def test_query_to_objects(self, sl_conn, monster_names):
        objects = qj.query_to_objects(sl_conn, ALL_MONSTERS)
        assert [o['Name'] for o in objects] == monster_names

    def test_query_to_array(self, sl_conn):
        array = qj.query_to_array(sl_conn, ALL_MONSTERS)
        assert len(array) == 10
        assert array[1] == {'Id': 2, 'Name': 'Flint', 'ScarySound': 'ooooooo!',
                            'Habitat': 'Shadows'}
        assert array[6] == {'Id': 7, 'Name': 'Boo', 'ScarySound': None, 'Habitat': None}

    def test_query_to_json_stream(self, sl_conn):
        stream = qj.query_to_json_stream(sl_conn, ALL_MONSTERS, encoding='utf-8')
        assert stream.tell() == 0
        assert qj.read_json(stream, 'utf-8') == qj.query_to_array(sl_conn, ALL_MONSTERS)

    def test_query_to_json_string(self, sl_conn):
        result = qj.read_json(qj.query_to_json_string(sl_conn, ALL_MONSTERS))
        assert result == qj.query_to_array(sl_conn, ALL_MONSTERS)

    def test_query_to_bson_stream(self, sl_conn):
        stream = qj.query_to_bson_stream(sl_conn, ALL_MONSTERS)
        assert stream.tell() == 0
        assert qj.read_bson_array(stream) == qj.query_to_array(sl_conn, ALL_MONSTERS)

    def test_query_to_bson_bytes(self, sl_conn):
        data = qj.query_to_bson_bytes(sl_conn, ALL_MONSTERS)
        assert qj.read_bson_array(data) == qj.query_to_array(sl_conn, ALL_MONSTERS)

    def test_query_to_bson_base64(self, sl_conn):
        text = qj.query_to_bson_base64(sl_conn, ALL_MONSTERS)
        assert base64.b64decode(text) == qj.query_to_bson_bytes(sl_conn, ALL_MONSTERS)
        assert qj.from_bson_base64(text, array=True) == qj.query_to_array(sl_conn, ALL_MONSTERS)

    def test_methods_match_functions(self, sl_conn):
        """Test the connection methods produce the same output as the module functions."""
        assert sl_conn.query_to_json_string(ALL_MONSTERS) == \
            qj.query_to_json_string(sl_conn, ALL_MONSTERS)
        assert sl_conn.query_to_bson_bytes(ALL_MONSTERS) == \
            qj.query_to_bson_bytes(sl_conn, ALL_MONSTERS)

    def test_two_named_monsters(self, sl_conn):
        """Test the two-row JSON string has exactly the selected names in order."""
        sql = 'SELECT Name FROM SimpleMonsters WHERE Name IN @Names ORDER BY Id'
        result = qj.query_to_json_string(sl_conn, sql, {'Names': ['Flint', 'Boo']})
        assert result == '[{"Name":"Flint"},{"Name":"Boo"}]'


class TestEmptyResults:
    """Test queries that return no rows."""

    sql = 'SELECT * FROM SimpleMonsters WHERE 1 = 0'

    def test_array(self, sl_conn):
        assert qj.query_to_array(sl_conn, self.sql) == []
        assert list(qj.query_to_objects(sl_conn, self.sql)) == []

    def test_json(self, sl_conn):
        assert qj.query_to_json_string(sl_conn, self.sql) == '[]'

    def test_bson(self, sl_conn):
        assert qj.read_bson_array(qj.query_to_bson_bytes(sl_conn, self.sql)) == []
        assert qj.from_bson_base64(qj.query_to_bson_base64(sl_conn, self.sql), array=True) == []


class TestFirstRow:
    """Test the single-row entry points."""

    params = {'Name': 'Flint'}
    expected = {'Name': 'Flint', 'Habitat': 'Shadows'}

    def test_query_first_object(self, sl_conn):
        assert qj.query_first_object(sl_conn, MONSTER_BY_NAME, self.params) == self.expected

    def test_query_first_to_json_stream(self, sl_conn):
        stream = qj.query_first_to_json_stream(sl_conn, MONSTER_BY_NAME, self.params,
                                               encoding='utf-8')
        assert qj.read_json(stream, 'utf-8') == self.expected

    def test_query_first_to_json_string(self, sl_conn):
        result = qj.query_first_to_json_string(sl_conn, MONSTER_BY_NAME, self.params)
        assert result == '{"Name":"Flint","Habitat":"Shadows"}'

    def test_query_first_to_bson_stream(self, sl_conn):
        stream = qj.query_first_to_bson_stream(sl_conn, MONSTER_BY_NAME, self.params)
        assert qj.read_bson_object(stream) == self.expected

    def test_query_first_to_bson_bytes(self, sl_conn):
        data = qj.query_first_to_bson_bytes(sl_conn, MONSTER_BY_NAME, self.params)
        assert qj.read_bson_object(data) == self.expected

    def test_query_first_to_bson_base64(self, sl_conn):
        text = qj.query_first_to_bson_base64(sl_conn, MONSTER_BY_NAME, self.params)
        assert qj.from_bson_base64(text) == self.expected

    def test_first_of_many(self, sl_conn):
        """Test the first row is taken when several are returned."""
        node = qj.query_first_object(sl_conn, ALL_MONSTERS)
        assert node['Name'] == 'Cookie Monster'

    def test_null_field_survives_bson(self, sl_conn):
        """Test a null column round-trips through BSON bytes as a null field."""
        data = qj.query_first_to_bson_bytes(sl_conn, "SELECT 'Flint' AS Name, NULL AS Habitat")
        assert qj.read_bson_object(data) == {'Name': 'Flint', 'Habitat': None}

    @pytest.mark.parametrize('entry_point', [
        qj.query_first_object,
        qj.query_first_to_json_stream,
        qj.query_first_to_json_string,
        qj.query_first_to_bson_stream,
        qj.query_first_to_bson_bytes,
        qj.query_first_to_bson_base64,
    ], ids=['object', 'json_stream', 'json_string', 'bson_stream', 'bson_bytes', 'bson_base64'])
    def test_no_rows(self, sl_conn, entry_point):
        """Test zero rows raise RowNotFoundError instead of an empty object."""
        with pytest.raises(qj.RowNotFoundError) as exc_info:
            entry_point(sl_conn, MONSTER_BY_NAME, {'Name': 'Nobody'})
        assert exc_info.value.rowcount == 0

    def test_single_rejects_many(self, sl_conn):
        with pytest.raises(qj.MultipleRowsFoundError):
            qj.query_first_to_json_string(sl_conn, ALL_MONSTERS, single=True)

    def test_single_accepts_one(self, sl_conn):
        node = qj.query_first_object(sl_conn, MONSTER_BY_NAME, {'Name': 'Boo'}, single=True)
        assert node == {'Name': 'Boo', 'Habitat': None}


class TestConverters:
    """Test a converter set is applied the same way on every output path."""

    sql = "SELECT 'flint' AS Name, 2 AS Id"

    def test_upper_case_across_paths(self, sl_conn):
        converters = {'upper': upper_strings}
        expected = [{'Name': 'FLINT', 'Id': 2}]

        as_string = qj.query_to_json_string(sl_conn, self.sql, converters=converters)
        as_stream = qj.query_to_json_stream(sl_conn, self.sql, converters=converters,
                                            encoding='utf-8')
        as_bytes = qj.query_to_bson_bytes(sl_conn, self.sql, converters=converters)

        assert qj.read_json(as_string) == expected
        assert qj.read_json(as_stream, 'utf-8') == expected
        assert qj.read_bson_array(as_bytes) == expected

    def test_upper_case_first_row(self, sl_conn):
        converters = {'upper': upper_strings}
        assert qj.query_first_to_json_string(sl_conn, self.sql, converters=converters) == \
            '{"Name":"FLINT","Id":2}'

    def test_builtin_names(self, sl_conn):
        sql = "SELECT '  Boo  ' AS Name, x'00ff' AS Data"
        node = qj.query_first_object(sl_conn, sql, converters=['strip_strings', 'bytes_hex'])
        assert node == {'Name': 'Boo', 'Data': '00ff'}

    def test_converter_failure(self, sl_conn):
        with pytest.raises(qj.EncodingError):
            qj.query_to_array(sl_conn, self.sql, converters={'to_int': int})


class TestEncodingSelection:

    def test_connection_default_encoding(self):
        """Test the connection's configured encoding is used for JSON streams."""
        with qj.connect(drivername='sqlite', database=':memory:', encoding='utf-16') as cn:
            stream = cn.query_to_json_stream("SELECT 'Señor' AS Name")
            assert stream.read().decode('utf-16') == '[{"Name":"Señor"}]'
            assert cn.query_to_json_string("SELECT 'Señor' AS Name") == '[{"Name":"Señor"}]'

    def test_explicit_encoding_wins(self, sl_conn):
        stream = sl_conn.query_to_json_stream("SELECT 'Señor' AS Name", encoding='latin-1')
        assert stream.read() == '[{"Name":"Señor"}]'.encode('latin-1')

    def test_unencodable_text(self, sl_conn):
        with pytest.raises(qj.EncodingError):
            sl_conn.query_to_json_string("SELECT 'Ωmega' AS Name", encoding='ascii')

    def test_caller_stream(self, sl_conn):
        stream = io.BytesIO()
        result = sl_conn.query_to_bson_stream('SELECT Name FROM SimpleMonsters ORDER BY Id',
                                              stream=stream)
        assert result is stream
        assert qj.read_bson_array(stream)[0] == {'Name': 'Cookie Monster'}
