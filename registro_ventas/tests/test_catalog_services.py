from registro_ventas import config
from registro_ventas.models import CategoryRegistry, default_unit_for
from registro_ventas.services import ClientService, ExpenseService, ProductService


def test_category_registry_is_open_and_case_insensitive():
    registry = CategoryRegistry(['Servicios'])
    assert registry.register('servicios') == 'Servicios'
    assert registry.register('Fletes') == 'Fletes'
    assert 'FLETES' in registry
    assert list(registry) == ['Servicios', 'Fletes']


def test_default_unit_for_molido():
    assert default_unit_for('Maíz MOLIDO') == 'TN'
    assert default_unit_for('Cemento') == 'U'


def test_product_validation_and_low_stock(sync, store):
    products = ProductService(sync)
    assert products.create_product({'name': 'Arena'})['kind'] == 'validation'
    assert products.create_product({'name': 'Arena', 'category': 'A', 'stock': -1})['ok'] is False

    products.create_product({'name': 'Arena', 'category': 'Agregados', 'price': 5, 'stock': 3})
    products.create_product({'name': 'Cemento', 'category': 'Construcción', 'price': 25, 'stock': 40})
    listed = store.list(config.PRODUCTS, 'createdAt')

    assert [p['name'] for p in products.low_stock(listed)] == ['Arena']
    assert [p['name'] for p in products.search(listed, 'constru')] == ['Cemento']
    assert list(products.categories(listed)) == ['Construcción', 'Agregados']


def test_client_display_name_and_suggestions(sync, store, audit):
    clients = ClientService(sync, audit)
    result = clients.create_client({'firstName': ' Juan ', 'lastName': 'Perez', 'phone': '999'}, 'admin')
    assert result['ok'] is True
    assert store.get(config.CLIENTS, result['id'])['name'] == 'Juan Perez'

    assert clients.create_client({'firstName': '', 'lastName': ''})['kind'] == 'validation'

    listed = store.list(config.CLIENTS)
    assert clients.find_by_name(listed, 'JUAN PEREZ')['id'] == result['id']
    assert clients.suggestions(listed, 'j') == []
    assert len(clients.suggestions(listed, 'ju')) == 1
    assert len(clients.search(listed, '999')) == 1

    clients.update_client(result['id'], {'firstName': 'Juan', 'lastName': 'Pérez'})
    assert store.get(config.CLIENTS, result['id'])['name'] == 'Juan Pérez'


def test_expense_registration(sync, store):
    expenses = ExpenseService(sync, clock=lambda: '2024-01-02T10:00:00')

    assert expenses.register_expense('abc', 'Luz')['error'] == 'Ingrese un monto válido'
    assert expenses.register_expense(10, '  ')['error'] == 'Ingrese una descripción'

    result = expenses.register_expense('12.50', 'Flete a obra', 'fletes')
    assert result['ok'] is True
    doc = store.get(config.EXPENSES, result['id'])
    assert doc == {
        'id': result['id'], 'amount': 12.5, 'category': 'fletes',
        'description': 'Flete a obra', 'date': '2024-01-02T10:00:00',
        'createdAt': doc['createdAt'],
    }
    assert 'fletes' in expenses.list_categories()
