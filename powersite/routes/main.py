import os

from flask import Blueprint, abort, current_app, flash, redirect, render_template, send_from_directory, url_for

from ..backend import BackendError, get_backend
from ..content import fetch_active_services, fetch_hero, fetch_products
from ..forms import ContactForm
from ..ratelimit import CONTACT_FORM_SCOPE, is_rate_limited, register_attempt
from ..utils import clean_text

main_bp = Blueprint('main', __name__)

WHY_CHOOSE_US = [
    {'icon': 'fa-solid fa-user-shield', 'title': 'Licensed & Experienced',
     'description': 'Certified electricians with 10+ years of hands-on experience.'},
    {'icon': 'fa-solid fa-clock', 'title': 'Same Day Response',
     'description': 'Quick turnaround for repairs, installations and emergencies.'},
    {'icon': 'fa-solid fa-certificate', 'title': 'Genuine Products',
     'description': 'Branded electrical items with warranty and certification.'},
    {'icon': 'fa-solid fa-indian-rupee-sign', 'title': 'Fair Pricing',
     'description': 'Transparent quotes with no hidden charges.'},
    {'icon': 'fa-solid fa-location-dot', 'title': 'Local & Trusted',
     'description': 'Serving Bhiwadi & nearby areas with reliable service and local accountability.'},
    {'icon': 'fa-solid fa-helmet-safety', 'title': 'Safety First',
     'description': 'Every job follows electrical safety standards.'},
]


def render_home(contact_form=None):
    backend = get_backend()
    return render_template(
        'index.html',
        hero=fetch_hero(backend),
        services=fetch_active_services(backend),
        products=fetch_products(backend),
        why_us=WHY_CHOOSE_US,
        contact_form=contact_form or ContactForm(),
    )


@main_bp.route('/')
def index():
    return render_home()


@main_bp.route('/contact', methods=['POST'])
def contact():
    limit = current_app.config.get('CONTACT_FORM_LIMIT', 12)
    window = current_app.config.get('CONTACT_FORM_WINDOW_SECONDS', 3600)
    limited, seconds = is_rate_limited(CONTACT_FORM_SCOPE, limit, window)
    if limited:
        current_app.logger.warning(f'Contact form rate limited (limit={limit} window={window}s)')
        flash(f'Too many messages from this connection. Please wait {seconds} seconds and try again.', 'danger')
        return redirect(url_for('main.index', _anchor='contact'))

    form = ContactForm()
    if not form.validate_on_submit():
        flash('Name, phone, and message are required.', 'danger')
        return render_home(contact_form=form), 400

    register_attempt(CONTACT_FORM_SCOPE, window)
    try:
        submission = get_backend().table('contact_submissions').insert({
            'name': clean_text(form.name.data, 200),
            'phone': clean_text(form.phone.data, 50),
            'message': clean_text(form.message.data, 5000),
        })
    except BackendError:
        flash('We could not send your message. Please call us or try again.', 'danger')
        return redirect(url_for('main.index', _anchor='contact'))
    current_app.logger.info(f'Contact submission saved (id={submission.id})')
    flash("Message Sent Successfully! We'll get back to you within 24 hours.", 'success')
    return redirect(url_for('main.index', _anchor='contact'))


@main_bp.route('/storage/<bucket>/<path:object_path>')
def storage_object(bucket, object_path):
    storage = get_backend().storage
    full_path = storage.resolve(bucket, object_path)
    if not full_path or not os.path.isfile(full_path):
        abort(404)
    directory, filename = os.path.split(full_path)
    return send_from_directory(directory, filename, conditional=True, etag=True)
