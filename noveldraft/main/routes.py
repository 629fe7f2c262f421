from flask import redirect, render_template, url_for
from flask_login import current_user, login_required

from ..services import get_job_store
from ..services.progress import progress_for
from . import bp


@bp.route("/")
def index():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))
    return render_template("main/landing.html")


@bp.route("/dashboard")
@login_required
def dashboard():
    jobs = get_job_store().list_for_owner(current_user.id)
    entries = [(job, progress_for(job)) for job in jobs]
    return render_template("main/dashboard.html", entries=entries)
