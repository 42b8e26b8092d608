import decimal

import psycopg
import pytest
from dataobject import ConnectionMode, ConstraintViolation
from dataobject import ConstraintViolationError, DataObject, DbType
from dataobject import Transaction

pytestmark = pytest.mark.postgres


def test_execute_text(pg_do, pg_fetch):
    count = (pg_do.set_sql('update customer set name = %(name)s where email = %(email)s')
             .add_in_parameter('name', 'Robert', size=100)
             .add_in_parameter('email', 'bob@example.com', size=255)
             .execute())
    assert count == 1
    assert pg_fetch('select name from customer where email = %s', 'bob@example.com') == [('Robert',)]
    assert pg_do.connection is None


def test_returning_output_parameter(pg_do):
    (pg_do.set_sql('insert into customer (email, name) values (%(email)s, %(name)s) returning id')
     .add_in_parameter('email', 'carol@example.com')
     .add_in_parameter('name', 'Carol')
     .add_out_parameter('id', DbType.INT32)
     .execute())
    assert pg_do.get_int32('id') == 3


def test_function_return_value(pg_do):
    (pg_do.set_stored_procedure('customer_count')
     .add_return_parameter()
     .add_in_parameter('p_min', 2)
     .execute())
    assert pg_do.get_return() == 1


def test_procedure_out_parameter(pg_do, pg_fetch):
    (pg_do.set_stored_procedure('add_customer')
     .add_in_parameter('p_email', 'dave@example.com')
     .add_in_parameter('p_name', 'Dave')
     .add_out_parameter('p_id', DbType.INT32)
     .execute())
    assert pg_do.get_int32('p_id') == 3
    assert pg_fetch('select email from customer where id = 3') == [('dave@example.com',)]


def test_scalar_and_read(pg_do):
    total = (pg_do.set_sql('select count(*) from customer where id >= %(id)s')
             .add_in_parameter('id', 1)
             .scalar_int64())
    assert total == 2

    emails = []
    (pg_do.set_sql('select email from customer where id >= %(id)s order by id')
     .add_in_parameter('id', 1)
     .read(lambda r: None, lambda r: emails.append(r['email'])))
    assert emails == ['alice@example.com', 'bob@example.com']


def test_scalar_decimal(pg_do):
    value = (pg_do.set_sql('select %(amount)s::numeric(10, 2)')
             .add_in_parameter('amount', decimal.Decimal('12.5'), precision=10, scale=2)
             .scalar_decimal())
    assert value == decimal.Decimal('12.50')


def test_prepared_reexecution(pg_do, pg_fetch):
    do = DataObject(pg_do.manager.connection_string, ConnectionMode.MULTIPLE_RESULT_SETS, drivername='postgresql')
    with do:
        do.set_sql('insert into item (customer_id, amount) values (%(customer_id)s, %(amount)s)')
        do.add_in_parameter('customer_id', db_type=DbType.INT32)
        do.add_in_parameter('amount', db_type=DbType.DECIMAL, precision=10, scale=2)
        do.prepare()
        for amount in ('1.00', '2.50', '3.75'):
            do.set_parameter('customer_id', 1).set_parameter('amount', amount).execute()
    assert pg_fetch('select sum(amount) from item') == [(decimal.Decimal('7.25'),)]


class TestConstraintViolations:

    def test_duplicate_key(self, pg_do, mocker):
        handler = mocker.Mock()
        pg_do.add_constraint_handler(handler)
        with pytest.raises(ConstraintViolationError) as exc_info:
            (pg_do.set_sql('insert into customer (email) values (%(email)s)')
             .add_in_parameter('email', 'alice@example.com')
             .execute())
        assert exc_info.value.violation is ConstraintViolation.DUPLICATE_KEY
        assert isinstance(exc_info.value.__cause__, psycopg.errors.UniqueViolation)
        handler.assert_called_once()

    def test_primary_key_reported_as_duplicate(self, pg_do):
        with pytest.raises(ConstraintViolationError) as exc_info:
            (pg_do.set_sql('insert into customer (id, email) values (%(id)s, %(email)s)')
             .add_in_parameter('id', 1)
             .add_in_parameter('email', 'other@example.com')
             .execute())
        assert exc_info.value.violation is ConstraintViolation.DUPLICATE_KEY

    def test_foreign_key(self, pg_do):
        with pytest.raises(ConstraintViolationError) as exc_info:
            (pg_do.set_sql('insert into item (customer_id) values (%(customer_id)s)')
             .add_in_parameter('customer_id', 999)
             .execute())
        assert exc_info.value.violation is ConstraintViolation.FOREIGN_KEY


def test_transaction_rollback(pg_do, pg_fetch):
    do = DataObject(pg_do.manager.connection_string, ConnectionMode.TRANSACTIONAL, drivername='postgresql')
    with do, pytest.raises(RuntimeError), Transaction(do):
        (do.set_sql('delete from customer where id = %(id)s')
         .add_in_parameter('id', 2)
         .execute())
        raise RuntimeError('abort')
    assert pg_fetch('select count(*) from customer') == [(2,)]


@pytest.mark.asyncio
async def test_async_function_and_violation(pg_do):
    await (pg_do.set_stored_procedure('customer_count')
           .add_return_parameter()
           .add_in_parameter('p_min', 1)
           .execute_async())
    assert pg_do.get_return() == 2

    with pytest.raises(ConstraintViolationError) as exc_info:
        await (pg_do.set_sql('insert into item (customer_id) values (%(customer_id)s)')
               .add_in_parameter('customer_id', 999)
               .execute_async())
    assert exc_info.value.violation is ConstraintViolation.FOREIGN_KEY
    assert pg_do.connection is None


if __name__ == '__main__':
    __import__('pytest').main([__file__])
