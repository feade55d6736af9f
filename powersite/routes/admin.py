from functools import wraps

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user

from ..backend import BackendError, get_backend
from ..bootstrap import BootstrapError, STATE_INITIALIZED, bootstrap_state, setup_admin
from ..forms import HeroForm, LoginForm, ProductForm, ServiceForm, SetupForm
from ..models import (
    PRODUCT_CATEGORIES,
    SERVICE_STATUS_ACTIVE,
    SERVICE_STATUS_INACTIVE,
    normalize_product_category,
    normalize_service_status,
    utc_now_naive,
)
from ..ratelimit import ADMIN_LOGIN_SCOPE, clear_attempts, is_rate_limited, register_attempt
from ..uploads import InvalidUpload, discard_uploads, has_upload, upload_image
from ..utils import clean_text, parse_int

admin_bp = Blueprint('admin', __name__)

LOGIN_ERROR_MESSAGES = {
    'invalid_credentials': 'Invalid email or password. Please try again.',
    'email_not_confirmed': 'Please verify your email address before signing in.',
}


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not current_user.is_admin:
            logout_user()
            flash('This account does not have admin access.', 'danger')
            return redirect(url_for('admin.login'))
        return view(*args, **kwargs)
    return wrapped


def first_form_error(form, fallback='Please fill in all required fields.'):
    for errors in form.errors.values():
        if errors:
            return errors[0]
    return fallback


def safe_image_url(value):
    url = clean_text(value, 500)
    if url.startswith('https://') or url.startswith('http://') or url.startswith('/'):
        return url
    return ''


def resolve_record_image(form, target):
    """Return the image URL to persist for a service or product form.

    A newly chosen file is only uploaded here, once the rest of the form has
    validated, so a discarded form never leaves a stored record pointing at it.
    """
    if has_upload(form.image.data):
        return upload_image(get_backend(), form.image.data, target)
    if form.remove_image.data:
        return None
    return safe_image_url(form.image_url.data) or None


# Auth
@admin_bp.route('', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated and current_user.is_admin:
        return redirect(url_for('admin.dashboard'))
    form = LoginForm()
    if request.method == 'POST':
        limit = current_app.config.get('ADMIN_LOGIN_LIMIT', 5)
        window = current_app.config.get('ADMIN_LOGIN_WINDOW_SECONDS', 300)
        limited, seconds = is_rate_limited(ADMIN_LOGIN_SCOPE, limit, window)
        if limited:
            flash(f'Too many login attempts. Try again in {seconds} seconds.', 'danger')
            return render_template('admin/login.html', form=form), 429

        if not form.validate():
            flash(first_form_error(form), 'danger')
            return render_template('admin/login.html', form=form), 400

        try:
            user = get_backend().auth.sign_in_with_password(form.email.data.strip(), form.password.data)
        except BackendError as exc:
            register_attempt(ADMIN_LOGIN_SCOPE, window)
            flash(LOGIN_ERROR_MESSAGES.get(exc.code, exc.message), 'danger')
            return render_template('admin/login.html', form=form), 401

        if not user.is_admin:
            register_attempt(ADMIN_LOGIN_SCOPE, window)
            current_app.logger.warning(f'Sign-in refused for non-admin account {user.id}')
            flash('This account does not have admin access.', 'danger')
            return render_template('admin/login.html', form=form), 403

        clear_attempts(ADMIN_LOGIN_SCOPE)
        session.clear()
        login_user(user)
        flash('Login Successful. Welcome to the admin panel!', 'success')
        return redirect(url_for('admin.dashboard'))
    return render_template('admin/login.html', form=form)


@admin_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    flash('You have been successfully logged out.', 'success')
    return redirect(url_for('admin.login'))


@admin_bp.route('/setup', methods=['GET', 'POST'])
def setup():
    backend = get_backend()
    form = SetupForm()
    if request.method == 'POST':
        if not form.validate():
            flash(first_form_error(form), 'danger')
            return render_template('admin/setup.html', form=form, initialized=False), 400
        try:
            result = setup_admin(backend, form.email.data, form.password.data, form.secret_key.data)
        except BootstrapError as exc:
            flash(exc.message, 'danger')
            return render_template('admin/setup.html', form=form, initialized=False), exc.status_code
        return render_template('admin/setup_done.html', email=result.email)

    try:
        initialized = bootstrap_state(backend) == STATE_INITIALIZED
    except BootstrapError:
        initialized = False
    return render_template('admin/setup.html', form=form, initialized=initialized)


# Dashboard
@admin_bp.route('/dashboard')
@admin_required
def dashboard():
    backend = get_backend()
    try:
        stats = {
            'services': backend.table('services').count(),
            'products': backend.table('products').count(),
            'messages': backend.table('contact_submissions').count(),
            'unread_messages': backend.table('contact_submissions').count(is_read=False),
        }
        recent_messages = backend.table('contact_submissions').select(order=('-created_at',), limit=5)
    except BackendError:
        flash('Failed to load dashboard statistics.', 'danger')
        stats = {'services': 0, 'products': 0, 'messages': 0, 'unread_messages': 0}
        recent_messages = []
    return render_template('admin/dashboard.html', stats=stats, recent_messages=recent_messages)


# Hero
@admin_bp.route('/hero', methods=['GET', 'POST'])
@admin_required
def hero():
    backend = get_backend()
    try:
        item = backend.table('hero_section').first()
    except BackendError:
        item = None
        flash('Failed to load hero section data.', 'danger')
    if item is None:
        return render_template('admin/hero.html', item=None, form=None, images=[]), 404

    if request.method == 'POST':
        form = HeroForm()
        posted_images = [safe_image_url(url) for url in request.form.getlist('background_images')]
        removed = {parse_int(index, default=-1) for index in request.form.getlist('remove_images')}
        images = [url for index, url in enumerate(posted_images) if url and index not in removed]
        if not form.validate():
            flash(first_form_error(form), 'danger')
            return render_template('admin/hero.html', item=item, form=form, images=images), 400
        try:
            new_image = request.files.get('new_image')
            if has_upload(new_image):
                images.append(upload_image(backend, new_image, 'hero'))
            backend.table('hero_section').update(item.id, {
                'heading': clean_text(form.heading.data, 500),
                'subheading': clean_text(form.subheading.data, 1000),
                'cta_button_text': clean_text(form.cta_button_text.data, 120),
                'cta_phone': clean_text(form.cta_phone.data, 40),
                'background_images': images,
            })
        except InvalidUpload as exc:
            flash(str(exc), 'danger')
            return render_template('admin/hero.html', item=item, form=form, images=images), 400
        except BackendError:
            discarded = discard_uploads(backend)
            images = [url for url in images if url not in discarded]
            flash('Failed to save changes.', 'danger')
            return render_template('admin/hero.html', item=item, form=form, images=images), 500
        flash('Hero section updated successfully!', 'success')
        return redirect(url_for('admin.hero'))

    form = HeroForm(obj=item)
    return render_template('admin/hero.html', item=item, form=form, images=list(item.background_images or []))


# Services CRUD
@admin_bp.route('/services')
@admin_required
def services():
    try:
        items = get_backend().table('services').select(order=('sort_order',))
    except BackendError:
        flash('Failed to load services.', 'danger')
        items = []
    return render_template('admin/services.html', items=items)


@admin_bp.route('/services/add', methods=['GET', 'POST'])
@admin_required
def service_add():
    form = ServiceForm()
    if request.method == 'POST':
        if not form.validate():
            flash(first_form_error(form), 'danger')
            return render_template('admin/service_form.html', form=form, item=None), 400
        table = get_backend().table('services')
        try:
            sort_order = form.sort_order.data
            if sort_order is None:
                sort_order = table.count() + 1
            table.insert({
                'title': clean_text(form.title.data, 200),
                'description': clean_text(form.description.data, 10000),
                'image_url': resolve_record_image(form, 'services'),
                'status': normalize_service_status(form.status.data),
                'sort_order': sort_order,
            })
        except InvalidUpload as exc:
            flash(str(exc), 'danger')
            return render_template('admin/service_form.html', form=form, item=None), 400
        except BackendError:
            discard_uploads(get_backend())
            flash('Failed to save service.', 'danger')
            return render_template('admin/service_form.html', form=form, item=None), 500
        flash('Service added successfully!', 'success')
        return redirect(url_for('admin.services'))
    return render_template('admin/service_form.html', form=form, item=None)


@admin_bp.route('/services/<item_id>/edit', methods=['GET', 'POST'])
@admin_required
def service_edit(item_id):
    table = get_backend().table('services')
    item = table.get(item_id)
    if item is None:
        abort(404)
    if request.method == 'POST':
        form = ServiceForm()
        if not form.validate():
            flash(first_form_error(form), 'danger')
            return render_template('admin/service_form.html', form=form, item=item), 400
        try:
            values = {
                'title': clean_text(form.title.data, 200),
                'description': clean_text(form.description.data, 10000),
                'image_url': resolve_record_image(form, 'services'),
                'status': normalize_service_status(form.status.data),
            }
            if form.sort_order.data is not None:
                values['sort_order'] = form.sort_order.data
            table.update(item.id, values)
        except InvalidUpload as exc:
            flash(str(exc), 'danger')
            return render_template('admin/service_form.html', form=form, item=item), 400
        except BackendError:
            discard_uploads(get_backend())
            flash('Failed to save service.', 'danger')
            return render_template('admin/service_form.html', form=form, item=item), 500
        flash('Service updated successfully!', 'success')
        return redirect(url_for('admin.services'))
    form = ServiceForm(obj=item)
    return render_template('admin/service_form.html', form=form, item=item)


@admin_bp.route('/services/<item_id>/delete', methods=['POST'])
@admin_required
def service_delete(item_id):
    try:
        get_backend().table('services').delete(item_id)
    except BackendError as exc:
        if exc.code == 'not_found':
            abort(404)
        flash('Failed to delete service.', 'danger')
        return redirect(url_for('admin.services'))
    flash('Service deleted successfully!', 'success')
    return redirect(url_for('admin.services'))


@admin_bp.route('/services/<item_id>/toggle-status', methods=['POST'])
@admin_required
def service_toggle_status(item_id):
    table = get_backend().table('services')
    item = table.get(item_id)
    if item is None:
        abort(404)
    new_status = SERVICE_STATUS_INACTIVE if item.status == SERVICE_STATUS_ACTIVE else SERVICE_STATUS_ACTIVE
    try:
        table.update(item.id, {'status': new_status})
    except BackendError:
        flash('Failed to update service status.', 'danger')
    return redirect(url_for('admin.services'))


# Products CRUD
@admin_bp.route('/products')
@admin_required
def products():
    category = normalize_product_category(request.args.get('category', ''))
    filters = {'category': category} if category else {}
    try:
        items = get_backend().table('products').select(order=('-created_at',), **filters)
    except BackendError:
        flash('Failed to load products.', 'danger')
        items = []
    return render_template(
        'admin/products.html',
        items=items,
        categories=PRODUCT_CATEGORIES,
        selected_category=category,
    )


@admin_bp.route('/products/add', methods=['GET', 'POST'])
@admin_required
def product_add():
    form = ProductForm()
    if request.method == 'POST':
        if not form.validate() or not normalize_product_category(form.category.data):
            flash(first_form_error(form), 'danger')
            return render_template('admin/product_form.html', form=form, item=None), 400
        try:
            get_backend().table('products').insert({
                'name': clean_text(form.name.data, 200),
                'category': normalize_product_category(form.category.data),
                'description': clean_text(form.description.data, 10000),
                'image_url': resolve_record_image(form, 'products'),
                'featured': bool(form.featured.data),
            })
        except InvalidUpload as exc:
            flash(str(exc), 'danger')
            return render_template('admin/product_form.html', form=form, item=None), 400
        except BackendError:
            discard_uploads(get_backend())
            flash('Failed to save product.', 'danger')
            return render_template('admin/product_form.html', form=form, item=None), 500
        flash('Product added successfully!', 'success')
        return redirect(url_for('admin.products'))
    return render_template('admin/product_form.html', form=form, item=None)


@admin_bp.route('/products/<item_id>/edit', methods=['GET', 'POST'])
@admin_required
def product_edit(item_id):
    table = get_backend().table('products')
    item = table.get(item_id)
    if item is None:
        abort(404)
    if request.method == 'POST':
        form = ProductForm()
        if not form.validate() or not normalize_product_category(form.category.data):
            flash(first_form_error(form), 'danger')
            return render_template('admin/product_form.html', form=form, item=item), 400
        try:
            table.update(item.id, {
                'name': clean_text(form.name.data, 200),
                'category': normalize_product_category(form.category.data),
                'description': clean_text(form.description.data, 10000),
                'image_url': resolve_record_image(form, 'products'),
                'featured': bool(form.featured.data),
            })
        except InvalidUpload as exc:
            flash(str(exc), 'danger')
            return render_template('admin/product_form.html', form=form, item=item), 400
        except BackendError:
            discard_uploads(get_backend())
            flash('Failed to save product.', 'danger')
            return render_template('admin/product_form.html', form=form, item=item), 500
        flash('Product updated successfully!', 'success')
        return redirect(url_for('admin.products'))
    form = ProductForm(obj=item)
    return render_template('admin/product_form.html', form=form, item=item)


@admin_bp.route('/products/<item_id>/delete', methods=['POST'])
@admin_required
def product_delete(item_id):
    try:
        get_backend().table('products').delete(item_id)
    except BackendError as exc:
        if exc.code == 'not_found':
            abort(404)
        flash('Failed to delete product.', 'danger')
        return redirect(url_for('admin.products'))
    flash('Product deleted successfully!', 'success')
    return redirect(url_for('admin.products'))


@admin_bp.route('/products/<item_id>/toggle-featured', methods=['POST'])
@admin_required
def product_toggle_featured(item_id):
    table = get_backend().table('products')
    item = table.get(item_id)
    if item is None:
        abort(404)
    try:
        table.update(item.id, {'featured': not item.featured})
    except BackendError:
        flash('Failed to update product.', 'danger')
    return redirect(url_for('admin.products'))


# Messages
@admin_bp.route('/messages')
@admin_required
def messages():
    try:
        items = get_backend().table('contact_submissions').select(order=('-created_at',))
    except BackendError:
        flash('Failed to load messages.', 'danger')
        items = []
    unread_count = sum(1 for item in items if not item.is_read)
    return render_template('admin/messages.html', items=items, unread_count=unread_count)


@admin_bp.route('/messages/<item_id>')
@admin_required
def message_view(item_id):
    table = get_backend().table('contact_submissions')
    item = table.get(item_id)
    if item is None:
        abort(404)
    if not item.is_read:
        try:
            item = table.update(item.id, {'is_read': True, 'read_at': utc_now_naive()})
        except BackendError:
            current_app.logger.warning(f'Could not mark message {item_id} as read.')
    return render_template('admin/message_view.html', item=item)


@admin_bp.route('/messages/<item_id>/delete', methods=['POST'])
@admin_required
def message_delete(item_id):
    try:
        get_backend().table('contact_submissions').delete(item_id)
    except BackendError as exc:
        if exc.code == 'not_found':
            abort(404)
        flash('Failed to delete message.', 'danger')
        return redirect(url_for('admin.messages'))
    flash('Message deleted successfully!', 'success')
    return redirect(url_for('admin.messages'))
