import csv
import hmac
import io
import os
from datetime import datetime
from functools import wraps

import click
from flask import (
    Flask,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    Response,
    session,
    url_for,
)
from werkzeug.utils import secure_filename

import config
from auth import AdminSession, AuthError, SqliteAuth, create_authenticator
from csv_import import CSV_COLUMNS, CSV_EXAMPLE, CSVImportError, decode_upload, parse_orders_csv
from order_store import OrderStoreError, SqliteOrderStore, create_order_store
from orders import (
    FILTERS,
    ORDER_FIELDS,
    ORDER_TYPES,
    STATUSES,
    build_order_payload,
    compute_metrics,
    convert_to_date_input,
    format_motor,
    format_order_date,
    normalize_filter,
    paginate,
    row_class,
    select_orders,
    status_badge,
    type_badge,
)

app = Flask(__name__)
app.config.update(config.flask_settings())

ADMIN_TABS = ("manage", "form", "csv")
ALLOWED_EXTENSIONS = {".csv"}

app.add_template_filter(format_order_date, "order_date")
app.add_template_filter(format_motor, "motor")
app.add_template_filter(row_class, "row_class")
app.add_template_filter(status_badge, "status_badge")
app.add_template_filter(type_badge, "type_badge")
app.add_template_filter(convert_to_date_input, "date_input")


@app.after_request
def add_security_headers(response):
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; "
        "img-src 'self' data:; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline';"
    )
    return response


@app.errorhandler(404)
def not_found(error):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Not found"}), 404
    return render_template("404.html"), 404


@app.errorhandler(413)
def upload_too_large(error):
    flash("CSV file is too large.", "error")
    return redirect(url_for("admin_panel", tab="csv"))


@app.errorhandler(500)
def server_error(error):
    return render_template("500.html"), 500


def get_order_store():
    admin = get_admin_session()
    return create_order_store(app.config, admin.access_token if admin else None)


def get_admin_session():
    admin = AdminSession.from_dict(session.get("admin"))
    if admin is None:
        return None
    if admin.is_expired():
        session.pop("admin", None)
        return None
    return admin


def login_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        if get_admin_session() is None:
            if request.path.startswith("/api/"):
                return jsonify({"error": "Unauthorized"}), 401
            flash("Please sign in again.", "error")
            return redirect(url_for("admin_panel"))
        return view(**kwargs)

    return wrapped_view


def fetch_orders(**kwargs):
    try:
        return get_order_store().list_orders(**kwargs), None
    except OrderStoreError as e:
        app.logger.error(f"Error fetching orders: {e}")
        return [], "Error loading orders."


def manage_view_args(source=None):
    source = source if source is not None else request.args
    return {
        "filter": normalize_filter(source.get("filter")),
        "q": (source.get("q") or "").strip(),
        "page": source.get("page", 1),
    }


def manage_url(**overrides):
    args = manage_view_args(request.form if request.method == "POST" else None)
    args.update(overrides)
    args = {key: value for key, value in args.items() if value not in (None, "")}
    return url_for("admin_panel", tab="manage", **args)


# ------------------------------------------------------------
# Dashboard
# ------------------------------------------------------------
@app.route("/")
def dashboard():
    if not session.get("dashboard_authenticated"):
        return render_template("dashboard_login.html")

    orders, error = fetch_orders(order_by="order_date", descending=True)
    if error:
        flash(error, "error")
    active_filter = normalize_filter(request.args.get("filter"))
    return render_template(
        "dashboard.html",
        orders=select_orders(orders, active_filter),
        metrics=compute_metrics(orders),
        active_filter=active_filter,
        filters=FILTERS,
        now=datetime.now(),
        refresh_seconds=app.config["DASHBOARD_REFRESH_SECONDS"],
    )


@app.route("/dashboard/login", methods=["POST"])
def dashboard_login():
    password = request.form.get("password", "")
    expected = app.config["DASHBOARD_PASSWORD"]
    if hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8")):
        session["dashboard_authenticated"] = True
        return redirect(url_for("dashboard"))
    return render_template("dashboard_login.html", error="Incorrect password"), 401


@app.route("/dashboard/logout", methods=["POST"])
def dashboard_logout():
    session.pop("dashboard_authenticated", None)
    return redirect(url_for("dashboard"))


# ------------------------------------------------------------
# Admin panel
# ------------------------------------------------------------
@app.route("/admin")
def admin_panel():
    admin = get_admin_session()
    if admin is None:
        return render_template("admin_login.html")

    tab = request.args.get("tab", "manage")
    if tab not in ADMIN_TABS:
        tab = "manage"
    orders, error = fetch_orders()
    if error:
        flash(error, "error")

    view = manage_view_args()
    selected = select_orders(orders, view["filter"], view["q"])
    page = paginate(selected, view["page"], app.config["ORDERS_PER_PAGE"])
    editing = request.args.get("edit")
    return render_template(
        "admin_panel.html",
        admin=admin,
        tab=tab,
        metrics=compute_metrics(orders),
        page=page,
        view=view,
        editing=editing,
        filters=FILTERS,
        statuses=STATUSES,
        order_types=ORDER_TYPES,
        csv_columns=CSV_COLUMNS,
        csv_example=CSV_EXAMPLE,
        manage_url=manage_url,
    )


@app.route("/admin/login", methods=["POST"])
def admin_login():
    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")
    try:
        admin = create_authenticator(app.config).sign_in(email, password)
    except AuthError as e:
        app.logger.info(f"Admin sign-in rejected for {email}")
        return render_template("admin_login.html", error=str(e), email=email), 401
    session["admin"] = admin.to_dict()
    app.logger.info(f"Admin signed in: {admin.email}")
    return redirect(url_for("admin_panel"))


@app.route("/admin/logout", methods=["POST"])
def admin_logout():
    admin = AdminSession.from_dict(session.pop("admin", None))
    if admin is not None:
        try:
            create_authenticator(app.config).sign_out(admin)
        except AuthError as e:
            app.logger.warning(f"Sign-out skipped: {e}")
    return redirect(url_for("admin_panel"))


@app.route("/admin/orders", methods=["POST"])
@login_required
def admin_order_create():
    try:
        payload = build_order_payload(request.form)
    except ValueError as e:
        flash(str(e), "error")
        return redirect(url_for("admin_panel", tab="form"))
    try:
        get_order_store().insert_orders([payload])
    except OrderStoreError as e:
        flash(f"Failed to add order: {e}", "error")
        return redirect(url_for("admin_panel", tab="form"))
    flash("Order added successfully!", "success")
    return redirect(url_for("admin_panel", tab="form"))


@app.route("/admin/orders/<order_id>", methods=["POST"])
@login_required
def admin_order_update(order_id: str):
    try:
        payload = build_order_payload(request.form)
    except ValueError as e:
        flash(str(e), "error")
        return redirect(manage_url(edit=order_id))
    try:
        updated = get_order_store().update_order(order_id, payload)
    except OrderStoreError as e:
        app.logger.error(f"Error updating order {order_id}: {e}")
        flash("Failed to update order", "error")
        return redirect(manage_url(edit=order_id))
    if updated is None:
        flash("Order not found.", "error")
    else:
        flash("Order updated.", "success")
    return redirect(manage_url())


@app.route("/admin/orders/upload", methods=["POST"])
@login_required
def admin_orders_upload():
    file = request.files.get("csv_file")
    if not file or not file.filename:
        flash("Choose a CSV file to upload.", "error")
        return redirect(url_for("admin_panel", tab="csv"))
    if not allowed_file(file.filename):
        flash("Only .csv files can be uploaded.", "error")
        return redirect(url_for("admin_panel", tab="csv"))
    try:
        orders = parse_orders_csv(decode_upload(file.read()))
        get_order_store().insert_orders(orders)
    except (CSVImportError, OrderStoreError) as e:
        flash(str(e) or "Failed to upload CSV file", "error")
        return redirect(url_for("admin_panel", tab="csv"))
    app.logger.info(f"Imported {len(orders)} orders from {secure_filename(file.filename)}")
    flash(f"Successfully uploaded {len(orders)} orders!", "success")
    return redirect(url_for("admin_panel", tab="csv"))


@app.route("/admin/orders/export")
@login_required
def admin_orders_export():
    orders, error = fetch_orders(order_by="order_date", descending=True)
    if error:
        flash(error, "error")
        return redirect(url_for("admin_panel"))
    columns = CSV_COLUMNS + ["email", "phoneno"]
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(columns)
    for order in orders:
        writer.writerow([order.get(column) or "" for column in columns])
    response = Response(output.getvalue(), mimetype="text/csv")
    response.headers["Content-Disposition"] = "attachment; filename=ev_orders.csv"
    return response


def allowed_file(filename: str) -> bool:
    _, ext = os.path.splitext(filename.lower())
    return ext in ALLOWED_EXTENSIONS


# ------------------------------------------------------------
# JSON API
# ------------------------------------------------------------
def order_to_dict(order):
    data = {"id": order.get("id")}
    data.update({field: order.get(field) for field in ORDER_FIELDS})
    data["created_at"] = order.get("created_at")
    data["updated_at"] = order.get("updated_at")
    return data


@app.route("/api/orders", methods=["GET"])
@login_required
def api_orders():
    try:
        orders = get_order_store().list_orders()
    except OrderStoreError as e:
        return jsonify({"error": str(e)}), 502
    view = manage_view_args()
    page = paginate(
        select_orders(orders, view["filter"], view["q"]),
        view["page"],
        app.config["ORDERS_PER_PAGE"],
    )
    return jsonify(
        {
            "orders": [order_to_dict(order) for order in page["items"]],
            "filter": view["filter"],
            "query": view["q"],
            "page": page["page"],
            "total_pages": page["total_pages"],
            "total": page["total"],
            "metrics": compute_metrics(orders),
        }
    )


def init_storage():
    """Create the local tables and seed the default admin."""
    if app.config["ORDER_BACKEND"] != "sqlite":
        return
    SqliteOrderStore(app.config["SQLITE_PATH"])
    SqliteAuth(app.config["SQLITE_PATH"], app.config["ADMIN_EMAIL"], app.config["ADMIN_PASSWORD"])


init_storage()


@app.cli.command("create-admin")
@click.argument("email")
@click.password_option()
def create_admin_command(email, password):
    """Add an admin user to the local SQLite backend."""
    authenticator = create_authenticator(app.config)
    if not hasattr(authenticator, "add_admin"):
        raise click.ClickException("Admins for the hosted backend are managed in the hosted project.")
    try:
        authenticator.add_admin(email, password)
    except AuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"Admin user added: {email.strip().lower()}")


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port)
