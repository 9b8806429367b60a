import os
import io
import logging
from functools import wraps

from flask import Flask, request, session, jsonify, send_file, g

from registro_ventas import config
from registro_ventas.errors import PermissionDeniedError, StoreError, ValidationError
from registro_ventas.models import DEFAULT_EXPENSE_CATEGORY

# Sistema de profiling interno
from registro_ventas.performance_logger import init_profiling

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y colaboradores
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo orquestan request → service → response.
# La lógica de negocio vive en services/.
# ═══════════════════════════════════════════════════════════════════════════
from registro_ventas.app_container import get_container
from registro_ventas.services import XLSX_MIMETYPE

config.configure_logging()
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.json.ensure_ascii = False

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en /logs/
# Para desactivar: VENTAS_PROFILING=0
init_profiling(app)


# Código HTTP por tipo de error de los resultados {'ok': False, 'kind': ...}
STATUS_BY_KIND = {
    'validation': 400,
    'identity': 400,
    'permission': 403,
    'not_found': 404,
    'conflict': 409,
    'store': 502,
    'partial': 500,
}


def container():
    c = get_container()
    c.bootstrap()
    return c


def respond(result, ok_status=200):
    """Convierte un resultado de servicio en respuesta JSON."""
    if result.get('ok'):
        return jsonify(result), ok_status
    return jsonify(result), STATUS_BY_KIND.get(result.get('kind'), 400)


def json_body():
    """Cuerpo JSON como dict ({} si falta o no es un objeto)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def view_payload(live, key, items):
    return {'ok': True, key: items, 'loading': live.loading, 'error': live.error}


# ═══════════════════════════════════════════════════════════════════════════
# DECORADORES DE ACCESO
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        ctx = container().session_service.current(session.get('sid'))
        if ctx is None:
            return jsonify({'ok': False, 'error': 'Debes iniciar sesión.'}), 401
        g.user = ctx
        return f(*args, **kwargs)
    return wrapper


def admin_required(f):
    @wraps(f)
    @login_required
    def wrapper(*args, **kwargs):
        if not g.user.is_admin:
            return jsonify({'ok': False, 'kind': 'permission', 'error': 'Permiso denegado.'}), 403
        return f(*args, **kwargs)
    return wrapper


@app.errorhandler(PermissionDeniedError)
def handle_permission_denied(e):
    return jsonify({'ok': False, 'kind': e.kind, 'error': str(e)}), 403


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'ok': False, 'kind': e.kind, 'error': str(e)}), 400


@app.errorhandler(StoreError)
def handle_store_error(e):
    logger.error('[API] Error del almacén en %s %s: %s', request.method, request.path, e)
    return jsonify({'ok': False, 'kind': e.kind, 'error': str(e)}), STATUS_BY_KIND.get(e.kind, 502)


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/login', methods=['POST'])
def login():
    data = json_body()
    result = container().session_service.login(data.get('username'), data.get('password'))
    if not result['ok']:
        return jsonify(result), 401
    session.clear()
    session['sid'] = result['session_id']
    session['username'] = result['user']['username']
    return jsonify({'ok': True, 'user': result['user']})


@app.route('/logout', methods=['POST'])
@login_required
def logout():
    container().session_service.logout(session.get('sid'))
    session.clear()
    return jsonify({'ok': True})


@app.route('/me')
@login_required
def me():
    return jsonify({'ok': True, 'user': g.user.to_dict()})


# ═══════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/products', methods=['GET'])
@login_required
def list_products():
    c = container()
    live = c.view(config.PRODUCTS)
    items = c.product_service.by_category(live.data, request.args.get('category'))
    items = c.product_service.search(items, request.args.get('q', ''))
    payload = view_payload(live, 'products', items)
    payload['categories'] = list(c.product_service.categories(live.data))
    payload['low_stock'] = [p['id'] for p in c.product_service.low_stock(live.data)]
    return jsonify(payload)


@app.route('/products', methods=['POST'])
@login_required
def create_product():
    return respond(container().product_service.create_product(json_body(), g.user.username), 201)


@app.route('/products/<product_id>', methods=['PUT'])
@login_required
def update_product(product_id):
    return respond(container().product_service.update_product(product_id, json_body(), g.user.username))


@app.route('/products/<product_id>', methods=['DELETE'])
@login_required
def delete_product(product_id):
    return respond(container().product_service.delete_product(product_id, g.user.username))


# ═══════════════════════════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/clients', methods=['GET'])
@login_required
def list_clients():
    c = container()
    live = c.view(config.CLIENTS)
    items = c.client_service.search(live.data, request.args.get('q', ''))
    return jsonify(view_payload(live, 'clients', items))


@app.route('/clients/suggest')
@login_required
def suggest_clients():
    """Autocompletado del nombre de cliente al registrar una venta."""
    c = container()
    live = c.view(config.CLIENTS)
    items = c.client_service.suggestions(live.data, request.args.get('q', ''))
    return jsonify(view_payload(live, 'clients', items))


@app.route('/clients', methods=['POST'])
@login_required
def create_client():
    return respond(container().client_service.create_client(json_body(), g.user.username), 201)


@app.route('/clients/<client_id>', methods=['PUT'])
@login_required
def update_client(client_id):
    return respond(container().client_service.update_client(client_id, json_body()))


# ═══════════════════════════════════════════════════════════════════════════
# VENTAS
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/sales', methods=['POST'])
@login_required
def register_sale():
    """
    Registra una venta sobre el snapshot en vivo de productos y clientes.
    Body: {productId, quantity, client, paymentStatus?, unit?}
    """
    c = container()
    data = json_body()
    product_id = data.get('productId')
    product = c.view(config.PRODUCTS).find(product_id)
    if product is None and isinstance(product_id, str) and product_id:
        # la vista puede no haber recibido aún el alta del producto
        product = c.store.get(config.PRODUCTS, product_id)
    clients = c.view(config.CLIENTS)
    result = c.sale_coordinator.register_sale(
        product=product,
        quantity=data.get('quantity'),
        client_name=data.get('client'),
        payment_status=data.get('paymentStatus'),
        unit=data.get('unit'),
        clients=None if clients.loading else clients.data,
        user=g.user.username,
    )
    return respond(result, 201)


@app.route('/sales/<sale_id>', methods=['PUT'])
@login_required
def edit_sale(sale_id):
    data = json_body()
    result = container().sale_coordinator.edit_sale(
        sale_id,
        client=data.get('client'),
        quantity=data.get('quantity'),
        price=data.get('price'),
        user=g.user.username,
    )
    return respond(result)


@app.route('/sales/<sale_id>/toggle-payment', methods=['POST'])
@login_required
def toggle_payment(sale_id):
    c = container()
    sale = c.view(config.SALES).find(sale_id) or c.store.get(config.SALES, sale_id)
    if sale is None:
        return jsonify({'ok': False, 'kind': 'not_found', 'error': 'Venta no encontrada'}), 404
    return respond(c.sale_coordinator.toggle_payment_status(sale, g.user.username))


@app.route('/sales/<sale_id>', methods=['DELETE'])
@login_required
def delete_sale(sale_id):
    # PermissionDeniedError → 403 (errorhandler)
    return respond(container().sale_coordinator.delete_sale(sale_id, g.user))


@app.route('/history')
@login_required
def history():
    c = container()
    live = c.view(config.SALES)
    only_debts = request.args.get('debts', '').lower() in ('1', 'true', 'si', 'sí')
    buckets = c.history.history(live.data, request.args.get('q', ''), only_debts)
    return jsonify(view_payload(live, 'buckets', buckets))


# ═══════════════════════════════════════════════════════════════════════════
# GASTOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/expenses', methods=['GET'])
@login_required
def list_expenses():
    c = container()
    live = c.view(config.EXPENSES)
    items = c.history.filter_expenses(live.data, request.args.get('q', ''))
    payload = view_payload(live, 'expenses', items)
    payload['categories'] = c.expense_service.list_categories()
    return jsonify(payload)


@app.route('/expenses', methods=['POST'])
@login_required
def register_expense():
    data = json_body()
    result = container().expense_service.register_expense(
        data.get('amount'),
        data.get('description'),
        data.get('category') or DEFAULT_EXPENSE_CATEGORY,
        user=g.user.username,
    )
    return respond(result, 201)


# ═══════════════════════════════════════════════════════════════════════════
# RESUMEN Y EXPORTACIÓN
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/summary')
@login_required
def summary():
    c = container()
    sales = c.view(config.SALES).data
    expenses = c.view(config.EXPENSES).data
    days = request.args.get('days', 7, type=int)
    return jsonify({
        'ok': True,
        'today': c.history.today_summary(sales, expenses),
        'daily': c.history.daily_series(sales, expenses, days=max(1, min(days, 31))),
        'payments': c.history.debt_breakdown(sales),
    })


@app.route('/export/<kind>')
@login_required
def export(kind):
    c = container()
    collections = {'sales': config.SALES, 'expenses': config.EXPENSES}
    if kind not in collections:
        return jsonify({'ok': False, 'kind': 'validation', 'error': 'Tipo de reporte desconocido'}), 400
    content, filename = c.export_service.export(kind, c.view(collections[kind]).data)
    return send_file(io.BytesIO(content), as_attachment=True,
                     download_name=filename, mimetype=XLSX_MIMETYPE)


# ═══════════════════════════════════════════════════════════════════════════
# USUARIOS (solo admin)
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/users', methods=['GET'])
@admin_required
def list_users():
    return jsonify({'ok': True, 'users': container().user_service.list_users()})


@app.route('/users', methods=['POST'])
@admin_required
def create_user():
    data = json_body()
    result = container().user_service.create_user(
        data.get('username'), data.get('password'), data.get('role'), admin=g.user
    )
    if result['ok']:
        return jsonify(result), 201
    return jsonify(result), 409 if result.get('already_exists') else 400


@app.route('/users/<user_id>/role', methods=['PUT'])
@admin_required
def change_role(user_id):
    result = container().user_service.change_role(user_id, json_body().get('role'), admin=g.user)
    return jsonify(result), 200 if result['ok'] else 400


@app.route('/audit')
@admin_required
def audit_logs():
    """Auditoría (más reciente primero). Filtro: ?type=VENTA|STOCK|CLIENTE|..."""
    audit = container().audit_service
    limit = max(1, min(request.args.get('limit', 100, type=int), 500))
    log_type = (request.args.get('type') or '').strip().upper()
    if log_type:
        logs = audit.get_logs_by_type(log_type, limit)
    else:
        logs = audit.get_recent_logs(limit)
    return jsonify({'ok': True, 'logs': logs})


if __name__ == "__main__":
    # Configuración para desarrollo local
    # En producción usar WSGI (gunicorn, waitress, etc.)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Servidor iniciado en http://{HOST}:{PORT}")
        print(f"  Acceso local: http://localhost:{PORT}")
        print(f"{'='*50}\n")

    app.run(host=HOST, port=PORT, debug=DEBUG)
