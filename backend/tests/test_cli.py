"""
Flask CLI command tests.
"""

from lottoledger.models import Store


def test_create_and_list_stores(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['stores', 'create', '--name', 'Main Street', '--code', 'MAIN', '--timezone', 'America/New_York'])
    assert result.exit_code == 0, result.output
    assert 'Created store' in result.output

    store = db_session.query(Store).filter_by(code='MAIN').one()
    assert store.timezone == 'America/New_York'

    result = runner.invoke(args=['stores', 'list'])
    assert 'Main Street' in result.output


def test_create_store_rejects_unknown_timezone(app, db_session):
    result = app.test_cli_runner().invoke(args=['stores', 'create', '--name', 'Nowhere', '--timezone', 'Mars/Base'])
    assert result.exit_code != 0
    assert 'Unknown timezone' in result.output


def test_list_boxes(app, box_a, store_a):
    result = app.test_cli_runner().invoke(args=['boxes', 'list', '--store-id', str(store_a.id)])
    assert result.exit_code == 0, result.output
    assert box_a.game_number in result.output


def test_reset_daily_requires_a_target(app, db_session):
    result = app.test_cli_runner().invoke(args=['tickets', 'reset-daily'])
    assert result.exit_code != 0


def test_reset_daily_for_store(app, pack_a, store_a):
    result = app.test_cli_runner().invoke(args=['tickets', 'reset-daily', '--store-id', str(store_a.id)])
    assert result.exit_code == 0, result.output
    assert f'Store {store_a.id}: reset 0 pack(s)' in result.output
