from __future__ import annotations

from io import BytesIO

from flask import (
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)
from flask_login import current_user, login_required

from ..services import (
    JobTerminated,
    NovelParameters,
    ParameterValidationError,
    StageFailure,
    StageOrderError,
    get_job_store,
    get_orchestrator,
    get_progress,
)
from ..services.export import (
    EXPORT_FORMATS,
    ExportError,
    export_filename,
    export_novel_to_pdf,
    export_novel_to_txt,
)
from ..services.progress import progress_for
from . import bp
from .forms import NovelParametersForm


def _owned_job(job_id: str):
    job = get_job_store().find(job_id)
    if job is None:
        abort(404)
    if job.owner_id != current_user.id:
        abort(403)
    return job


@bp.route("/new", methods=["GET", "POST"])
@login_required
def new():
    form = NovelParametersForm()
    if form.validate_on_submit():
        try:
            parameters = NovelParameters.from_payload(form.to_payload())
        except ParameterValidationError as exc:
            for problem in exc.problems:
                flash(problem, "danger")
        else:
            job = get_job_store().create(current_user.id, parameters)
            flash("Your novel is queued. Generation starts when you advance it.", "success")
            return redirect(url_for("novels.detail", job_id=job.id))

    return render_template("novels/new.html", form=form)


@bp.route("/api", methods=["POST"])
@login_required
def create_job():
    payload = request.get_json(silent=True)
    try:
        parameters = NovelParameters.from_payload(payload)
    except ParameterValidationError as exc:
        return jsonify({"error": str(exc), "problems": exc.problems}), 400

    job = get_job_store().create(current_user.id, parameters)
    return jsonify({"job_id": job.id, "progress": progress_for(job).to_dict()}), 201


@bp.route("/<job_id>")
@login_required
def detail(job_id: str):
    job = _owned_job(job_id)
    return render_template("novels/detail.html", job=job, progress=progress_for(job))


@bp.route("/<job_id>/advance", methods=["POST"])
@login_required
def advance(job_id: str):
    _owned_job(job_id)
    orchestrator = get_orchestrator()
    run_to_completion = request.args.get("mode") == "complete"

    try:
        if run_to_completion:
            progress = orchestrator.run(job_id)
        else:
            progress = orchestrator.advance(job_id).progress
    except StageOrderError as exc:
        return jsonify({"error": str(exc)}), 409
    except (JobTerminated, StageFailure) as exc:
        current_app.logger.info("Novel %s stopped: %s", job_id, exc)
        progress = get_progress(orchestrator.store, job_id)
    except Exception:
        current_app.logger.exception("Unexpected error while advancing novel %s", job_id)
        return jsonify({"error": "We couldn't advance this novel right now. Please try again."}), 500

    return jsonify(progress.to_dict())


@bp.route("/<job_id>/progress")
@login_required
def progress(job_id: str):
    _owned_job(job_id)
    return jsonify(get_progress(get_job_store(), job_id).to_dict())


@bp.route("/<job_id>/delete", methods=["POST"])
@login_required
def delete(job_id: str):
    job = _owned_job(job_id)
    get_job_store().delete(job.id)
    flash(f"Deleted '{job.title}'.", "info")
    return redirect(url_for("main.dashboard"))


@bp.route("/<job_id>/export/<fmt>")
@login_required
def export(job_id: str, fmt: str):
    job = _owned_job(job_id)
    if fmt not in EXPORT_FORMATS:
        abort(404)

    include_outline = request.args.get("outline") == "1"
    if fmt == "txt":
        data = export_novel_to_txt(job, include_outline=include_outline).encode("utf-8")
        mimetype = "text/plain; charset=utf-8"
    else:
        try:
            data = export_novel_to_pdf(job, include_outline=include_outline)
        except ExportError as exc:
            current_app.logger.error("PDF export failed for novel %s: %s", job_id, exc)
            flash("We couldn't build the PDF right now. Please try again.", "danger")
            return redirect(url_for("novels.detail", job_id=job_id))
        mimetype = "application/pdf"

    return send_file(
        BytesIO(data),
        mimetype=mimetype,
        as_attachment=True,
        download_name=export_filename(job, fmt),
    )
