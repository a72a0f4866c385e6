"""
Tests for the transactional write coordinator (transactions/transaction_write.py)
with a mocked gateway.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from botocore.exceptions import EndpointConnectionError

from dynamodb_odm.exceptions import (
    ArgumentError,
    DocumentNotValid,
    DynamoDBODMError,
    MissingHashKey,
    MissingRangeKey,
    RecordNotDestroyed,
    RecordNotSaved,
    Rollback,
    TransactionAborted,
    UnknownAttribute,
)
from dynamodb_odm.models import (
    Abort,
    Document,
    Field,
    IdentityMap,
    TableMeta,
    after_commit,
    after_rollback,
    before_destroy,
    before_save,
)
from dynamodb_odm.transactions import TransactionWrite


class Account(Document):
    email = Field(required=True)
    logins = Field('integer')
    tags = Field('set', of='string')

    def _init_state(self):
        super()._init_state()
        self.events = []

    @after_commit
    def record_commit(self):
        self.events.append('commit')

    @after_rollback
    def record_rollback(self):
        self.events.append('rollback')


class Entry(Document):
    class Meta(TableMeta):
        partition_key = 'ledger_id'
        sort_key = 'position'
        timestamps = False

    ledger_id = Field()
    position = Field('integer')
    amount = Field('number')


class Meeting(Document):
    class Meta(TableMeta):
        timestamps = False

    title = Field()
    starts_at = Field('datetime')


class Locked(Document):
    @before_destroy
    def refuse(self):
        raise Abort()

    @before_save
    def refuse_save(self):
        raise Abort()


@pytest.fixture
def gateway():
    """Mocked transaction gateway."""
    return Mock()


def submitted(gateway):
    """The batch passed to the single transact_write_items call."""
    gateway.transact_write_items.assert_called_once()
    return gateway.transact_write_items.call_args.args[0]


class TestKeyChecks:
    """Test key checks at queue time."""

    def test_update_fields_without_partition_key(self, gateway):
        """Test a missing partition key raises before any backend call."""
        with pytest.raises(MissingHashKey):
            with TransactionWrite(gateway=gateway) as t:
                t.update_fields(Account, None, {'email': 'a@example.com'})

        assert gateway.transact_write_items.call_count == 0

    def test_update_fields_without_sort_key(self, gateway):
        """Test a missing sort key raises MissingRangeKey."""
        with pytest.raises(MissingRangeKey):
            with TransactionWrite(gateway=gateway) as t:
                t.update_fields(Entry, 'l1', {'amount': 5})

        assert gateway.transact_write_items.call_count == 0

    def test_create_without_sort_key(self, gateway):
        """Test new records still need their sort key."""
        with pytest.raises(MissingRangeKey):
            with TransactionWrite(gateway=gateway) as t:
                t.create(Entry, {'ledger_id': 'l1'})

    def test_save_persisted_without_partition_key(self, gateway):
        """Test persisted records need their partition key."""
        account = Account.from_database({'email': 'a@example.com'})

        with pytest.raises(MissingHashKey):
            with TransactionWrite(gateway=gateway) as t:
                t.save(account)

    def test_unknown_attribute(self, gateway):
        """Test update_fields rejects undeclared attributes."""
        with pytest.raises(UnknownAttribute):
            with TransactionWrite(gateway=gateway) as t:
                t.update_fields(Account, 'a1', builder=lambda u: u.add(visits=1))

        assert gateway.transact_write_items.call_count == 0


class TestCreate:
    """Test create requests."""

    def test_put_with_existence_condition(self, gateway):
        """Test creates become a conditional Put with a generated id and timestamps."""
        with TransactionWrite(gateway=gateway) as t:
            account = t.create(Account, {'email': 'a@example.com'})

        (item,) = submitted(gateway)
        put = item['Put']
        assert put['TableName'] == 'odm_test_accounts'
        assert put['ConditionExpression'] == 'attribute_not_exists(#_k0)'
        assert put['ExpressionAttributeNames'] == {'#_k0': 'id'}
        assert put['Item']['id'] == account.id
        assert put['Item']['email'] == 'a@example.com'
        assert 'created_at' in put['Item'] and 'updated_at' in put['Item']
        assert 'logins' not in put['Item']
        assert account.is_persisted()
        assert account.events == ['commit']

    def test_composite_key_condition(self, gateway):
        """Test both key attributes are checked for composite keys."""
        with TransactionWrite(gateway=gateway) as t:
            t.create(Entry, {'ledger_id': 'l1', 'position': 1, 'amount': 10})

        (item,) = submitted(gateway)
        assert item['Put']['ConditionExpression'] == 'attribute_not_exists(#_k0) AND attribute_not_exists(#_k1)'
        assert item['Put']['ExpressionAttributeNames'] == {'#_k0': 'ledger_id', '#_k1': 'position'}

    def test_skip_existence_check(self, gateway):
        """Test skip_existence_check drops the condition."""
        with TransactionWrite(gateway=gateway) as t:
            t.create(Account, {'email': 'a@example.com'}, skip_existence_check=True)

        (item,) = submitted(gateway)
        assert 'ConditionExpression' not in item['Put']

    def test_create_many(self, gateway):
        """Test a list of attribute dicts creates one model each."""
        with TransactionWrite(gateway=gateway) as t:
            accounts = t.create(Account, [{'email': 'a@example.com'}, {'email': 'b@example.com'}])

        assert [account.email for account in accounts] == ['a@example.com', 'b@example.com']
        assert len(submitted(gateway)) == 2

    def test_initializer(self, gateway):
        """Test the initializer runs on the new model before it is saved."""
        with TransactionWrite(gateway=gateway) as t:
            account = t.create(Account, initializer=lambda a: setattr(a, 'email', 'init@example.com'))

        assert account.email == 'init@example.com'


class TestValidationFailures:
    """Test isolation of operations that fail validation."""

    def test_invalid_create_is_isolated(self, gateway):
        """Test a non-raising invalid create drops out while siblings commit."""
        with TransactionWrite(gateway=gateway) as t:
            invalid = t.create(Account, {'email': ''})
            valid = t.create(Account, {'email': 'a@example.com'})

        (item,) = submitted(gateway)
        assert item['Put']['Item']['email'] == 'a@example.com'
        assert invalid.new_record is True
        assert invalid.errors['email'] == ["can't be blank"]
        assert not invalid.is_persisted()
        assert valid.is_persisted()

    def test_save_returns_false(self, gateway):
        """Test save returns False for an invalid model."""
        with TransactionWrite(gateway=gateway) as t:
            assert t.save(Account()) is False

        gateway.transact_write_items.assert_not_called()

    def test_save_or_raise_rolls_back(self, gateway):
        """Test the raising variant aborts the whole transaction."""
        valid = Account(email='a@example.com')

        with pytest.raises(DocumentNotValid) as exc_info:
            with TransactionWrite(gateway=gateway) as t:
                t.save(valid)
                t.save_or_raise(Account())

        assert exc_info.value.errors == {'email': ["can't be blank"]}
        gateway.transact_write_items.assert_not_called()
        assert valid.new_record is True
        assert valid.events == ['rollback']

    def test_save_without_validation(self, gateway):
        """Test validate=False queues invalid models."""
        with TransactionWrite(gateway=gateway) as t:
            assert t.save(Account(), validate=False) is True

        assert len(submitted(gateway)) == 1


class TestCallbacks:
    """Test callbacks halting operations."""

    def test_aborted_create_returns_unsaved_model(self, gateway):
        """Test create hands back the model even when a callback aborted it."""
        with TransactionWrite(gateway=gateway) as t:
            locked = t.create(Locked)

        assert isinstance(locked, Locked)
        assert not locked.is_persisted()
        gateway.transact_write_items.assert_not_called()

    def test_halted_save(self, gateway):
        """Test a halted save returns False and the raising variant raises."""
        with TransactionWrite(gateway=gateway) as t:
            assert t.save(Locked()) is False

        with pytest.raises(RecordNotSaved):
            with TransactionWrite(gateway=gateway) as t:
                t.save_or_raise(Locked())

        gateway.transact_write_items.assert_not_called()

    def test_halted_destroy(self, gateway):
        """Test a halted destroy returns False and the raising variant raises."""
        locked = Locked.from_database({'id': 'l1'})

        with TransactionWrite(gateway=gateway) as t:
            assert t.destroy(locked) is False

        with pytest.raises(RecordNotDestroyed):
            with TransactionWrite(gateway=gateway) as t:
                t.destroy_or_raise(locked)

        assert not locked.destroyed
        gateway.transact_write_items.assert_not_called()

    def test_delete_ignores_callbacks(self, gateway):
        """Test delete by instance runs no callbacks."""
        locked = Locked.from_database({'id': 'l1'})

        with TransactionWrite(gateway=gateway) as t:
            assert t.delete(locked) is locked

        assert submitted(gateway) == [{'Delete': {'TableName': 'odm_test_lockeds', 'Key': {'id': 'l1'}}}]
        assert locked.destroyed


class TestTransactionConfig:
    """Test that actions cast values with the transaction's configuration."""

    BERLIN_TEN_AM = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def test_create_casts_with_transaction_zone(self, gateway, odm_config):
        """Test naive datetimes given to create use the transaction's zone, not the current one."""
        config = odm_config.replace(application_timezone='Europe/Berlin')

        with TransactionWrite(config, gateway=gateway) as t:
            meeting = t.create(Meeting, {'starts_at': '2024-01-15T10:00:00'})

        assert meeting.starts_at == self.BERLIN_TEN_AM
        assert meeting.starts_at.utcoffset().total_seconds() == 3600

    def test_update_casts_with_transaction_zone(self, gateway, odm_config):
        """Test attributes assigned by update use the transaction's zone."""
        config = odm_config.replace(application_timezone='Europe/Berlin')
        meeting = Meeting.from_database({'id': 'm1', 'title': 'Standup'})

        with TransactionWrite(config, gateway=gateway) as t:
            t.update(meeting, {'starts_at': datetime(2024, 1, 15, 10, 0)})

        assert meeting.starts_at == self.BERLIN_TEN_AM

    def test_timestamps_use_transaction_zone(self, gateway, odm_config):
        """Test touched timestamps are cast in the transaction's zone."""
        config = odm_config.replace(application_timezone='Asia/Tokyo')

        with TransactionWrite(config, gateway=gateway) as t:
            account = t.create(Account, {'email': 'a@example.com'})

        assert account.updated_at.utcoffset().total_seconds() == 9 * 3600
        assert account.created_at == account.updated_at


class TestUpdates:
    """Test saves of persisted models and field-level updates."""

    def test_unchanged_save_is_skipped(self, gateway):
        """Test saving an unchanged persisted model writes nothing."""
        account = Account.from_database({'id': 'a1', 'email': 'a@example.com'})

        with TransactionWrite(gateway=gateway) as t:
            assert t.save(account) is True

        gateway.transact_write_items.assert_not_called()

    def test_changed_save_updates_changes(self, gateway):
        """Test saving a persisted model updates only changed attributes."""
        account = Account.from_database({'id': 'a1', 'email': 'a@example.com', 'logins': 1})
        account.email = 'b@example.com'
        account.logins = None

        with TransactionWrite(gateway=gateway) as t:
            t.save(account)

        (item,) = submitted(gateway)
        update = item['Update']
        assert update['Key'] == {'id': 'a1'}
        assert 'ConditionExpression' not in update
        assert update['UpdateExpression'] == 'SET #_n0 = :_s0, #_n1 = :_s1 REMOVE #_r0'
        assert set(update['ExpressionAttributeNames'].values()) == {'email', 'updated_at', 'logins'}
        assert update['ExpressionAttributeNames']['#_r0'] == 'logins'
        assert not account.is_changed()

    def test_update_assigns_and_saves(self, gateway):
        """Test update assigns attributes before saving."""
        account = Account.from_database({'id': 'a1', 'email': 'a@example.com'})

        with TransactionWrite(gateway=gateway) as t:
            assert t.update(account, {'logins': 2}) is True

        assert account.logins == 2
        assert len(submitted(gateway)) == 1

    def test_update_fields_requires_existing_item(self, gateway):
        """Test update_fields conditions on the item existing."""
        with TransactionWrite(gateway=gateway) as t:
            t.update_fields(
                Account, 'a1', {'email': 'b@example.com'},
                builder=lambda u: (u.add(logins=1), u.delete(tags={'old'}))
            )

        (item,) = submitted(gateway)
        update = item['Update']
        assert update['ConditionExpression'] == 'attribute_exists(#_k0)'
        assert update['ExpressionAttributeNames']['#_k0'] == 'id'
        assert 'ADD #_a0 :_a0' in update['UpdateExpression']
        assert 'DELETE #_d0 :_d0' in update['UpdateExpression']
        assert update['ExpressionAttributeValues'][':_a0'] == 1
        assert update['ExpressionAttributeValues'][':_d0'] == {'old'}

    def test_update_fields_keeps_explicit_updated_at(self, gateway):
        """Test a caller-supplied updated_at is not replaced."""
        with TransactionWrite(gateway=gateway) as t:
            t.update_fields(Account, 'a1', {'updated_at': '2024-01-01T00:00:00+00:00'})

        (item,) = submitted(gateway)
        values = item['Update']['ExpressionAttributeValues']
        assert list(values.values()) == [1704067200]

    def test_empty_update_fields_is_skipped(self, gateway):
        """Test an empty update_fields is dropped from the batch."""
        with TransactionWrite(gateway=gateway) as t:
            t.update_fields(Account, 'a1')

        gateway.transact_write_items.assert_not_called()

    def test_empty_update_fields_or_raise(self, gateway):
        """Test the raising variant and upsert reject empty updates."""
        with pytest.raises(ArgumentError):
            with TransactionWrite(gateway=gateway) as t:
                t.update_fields_or_raise(Account, 'a1')

        with pytest.raises(ArgumentError):
            with TransactionWrite(gateway=gateway) as t:
                t.upsert(Account, 'a1')

    def test_upsert_has_no_condition(self, gateway):
        """Test upsert writes without requiring the item to exist."""
        with TransactionWrite(gateway=gateway) as t:
            t.upsert(Entry, 'l1', {'amount': 5}, range_key=2)

        (item,) = submitted(gateway)
        assert 'ConditionExpression' not in item['Update']
        assert item['Update']['Key'] == {'ledger_id': 'l1', 'position': 2}
        assert item['Update']['UpdateExpression'] == 'SET #_n0 = :_s0'

    def test_delete_by_key(self, gateway):
        """Test delete by primary key returns None."""
        with TransactionWrite(gateway=gateway) as t:
            assert t.delete(Entry, 'l1', 3) is None

        assert submitted(gateway) == [
            {'Delete': {'TableName': 'odm_test_entrys', 'Key': {'ledger_id': 'l1', 'position': 3}}}
        ]


class TestLifecycle:
    """Test commit, rollback and reuse."""

    def test_backend_failure_runs_rollback_hooks(self, gateway):
        """Test a cancelled batch runs rollback callbacks and re-raises."""
        gateway.transact_write_items.side_effect = TransactionAborted("Transaction cancelled")
        account = Account(email='a@example.com')

        with pytest.raises(TransactionAborted):
            with TransactionWrite(gateway=gateway) as t:
                t.save(account)

        assert account.events == ['rollback']
        assert account.new_record is True
        assert t.state == 'failed'

    def test_unmapped_failure_runs_rollback_hooks(self, gateway):
        """Test errors outside the domain hierarchy still roll back before propagating."""
        gateway.transact_write_items.side_effect = EndpointConnectionError(endpoint_url='http://localhost:8000')
        account = Account(email='a@example.com')

        with pytest.raises(EndpointConnectionError):
            with TransactionWrite(gateway=gateway) as t:
                t.save(account)

        assert account.events == ['rollback']
        assert account.new_record is True
        assert t.state == 'failed'

    def test_rollback_is_swallowed(self, gateway):
        """Test raising Rollback discards the batch without propagating."""
        account = Account(email='a@example.com')

        with TransactionWrite(gateway=gateway) as t:
            t.save(account)
            raise Rollback()

        gateway.transact_write_items.assert_not_called()
        assert account.events == ['rollback']

    def test_other_exceptions_propagate(self, gateway):
        """Test other exceptions roll back and propagate."""
        with pytest.raises(RuntimeError):
            with TransactionWrite(gateway=gateway) as t:
                t.save(Account(email='a@example.com'))
                raise RuntimeError("boom")

        gateway.transact_write_items.assert_not_called()

    def test_finished_transaction_cannot_be_reused(self, gateway):
        """Test queuing on a committed transaction raises."""
        with TransactionWrite(gateway=gateway) as t:
            t.save(Account(email='a@example.com'))

        assert t.state == 'committed'
        with pytest.raises(DynamoDBODMError):
            t.save(Account(email='b@example.com'))

    def test_execute(self, gateway):
        """Test execute runs the block and commits."""
        account = TransactionWrite.execute(
            lambda t: t.create(Account, {'email': 'a@example.com'}),
            gateway=gateway
        )

        assert account.is_persisted()
        assert len(submitted(gateway)) == 1

    def test_identity_map_sync(self, gateway):
        """Test committed models enter the identity map and deleted ones leave it."""
        identity_map = IdentityMap()
        stale = Account.from_database({'id': 'old', 'email': 'old@example.com'})
        identity_map.put(stale)

        with TransactionWrite(gateway=gateway, identity_map=identity_map) as t:
            account = t.create(Account, {'email': 'a@example.com'})
            t.delete(Account, 'old')

        assert identity_map.get(Account, account.id) is account
        assert identity_map.get(Account, 'old') is None
