"""
View functions for the School Election API
==========================================

JSON endpoints for:
- Election status, administration and lifecycle (set current, toggle, delete,
  display order, copying positions and candidates between elections)
- System settings with ETag support
- Vote submission and voter validation
- Results and turnout statistics

Errors raised by the engine (``elections.errors``) are turned into JSON
responses by ``ApiErrorMiddleware``. Voter-facing endpoints are anonymous;
administration endpoints use Django session auth and model permissions.
"""

from functools import wraps
import logging

from asgiref.sync import sync_to_async
from django.apps import apps  # pyright: ignore[reportMissingModuleSource]
from django.http import HttpResponseNotModified, JsonResponse  # pyright: ignore[reportMissingModuleSource]
from django.views.decorators.csrf import csrf_exempt  # pyright: ignore[reportMissingModuleSource]
from django.views.decorators.http import require_http_methods  # pyright: ignore[reportMissingModuleSource]

from . import ballots, results
from .errors import Forbidden, NotFound, ValidationFailed
from .forms import ElectionForm
from .models import Election
from .utils import get_client_ip, parse_uuid, read_json

logger = logging.getLogger(__name__)


def engine():
    """The ElectionsConfig holding the process-wide engine services."""
    return apps.get_app_config('elections')


def json_login_required(view):
    """Like login_required, but answers 401 JSON instead of redirecting."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'message': 'Authentication required'}, status=401)
        return view(request, *args, **kwargs)
    return wrapper


def json_permission_required(perm):
    """Require an authenticated user holding ``perm``; 401/403 JSON otherwise."""
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({'message': 'Authentication required'}, status=401)
            if not request.user.has_perm(perm):
                return JsonResponse({'message': 'You do not have permission to perform this action'}, status=403)
            return view(request, *args, **kwargs)
        return wrapper
    return decorator


def resolve_election(request):
    """Election named by ``?electionId=``, else the current one."""
    election_id = request.GET.get('electionId')
    if election_id:
        pk = parse_uuid(election_id)
        if pk is None:
            raise ValidationFailed('Invalid election ID')
        return Election.objects.filter(pk=pk).first()
    return Election.objects.current()


# ---------------------------------------------------------------------------
# Election status and administration
# ---------------------------------------------------------------------------

@require_http_methods(["GET"])
async def election_status(request):
    """
    Public election status.

    Served from cache, falling back to a stale or default payload when the
    database is slow or failing. Never returns an error.
    """
    result = await engine().read_path.election_status()
    response = JsonResponse(result.payload)
    response['X-Data-Source'] = result.source
    return response


@require_http_methods(["GET", "POST"])
@json_login_required
def election_collection(request):
    """
    GET: List elections in display order (priority, then newest first)
    POST: Create an election from {title, date, startTime, endTime[, startDate, endDate]}
    """
    if request.method == 'GET':
        return JsonResponse([election.as_dict() for election in Election.objects.with_turnout()], safe=False)

    if not request.user.has_perm('elections.add_election'):
        raise Forbidden('You do not have permission to perform this action')

    payload = read_json(request)
    form = ElectionForm.from_payload(payload)
    if not form.is_valid():
        missing = [field for field in ('title', 'date', 'start_time', 'end_time') if field in form.errors]
        message = 'Missing required fields' if missing else 'Invalid election data'
        raise ValidationFailed(message, errors={field: [str(e) for e in errs] for field, errs in form.errors.items()})

    election = engine().state_machine.create(**form.cleaned_data)
    return JsonResponse(election.as_dict(), status=201)


@require_http_methods(["GET"])
def current_election(request):
    election = Election.objects.current()
    if election is None:
        raise NotFound('No current election found')
    return JsonResponse(election.as_dict())


@require_http_methods(["POST"])
@json_login_required
def create_default_election(request):
    """One-time seed of the default election when none exist."""
    election = engine().state_machine.seed_default()
    if election is None:
        return JsonResponse({'message': 'Elections already exist', 'created': False})
    return JsonResponse({'message': 'Default election created', 'created': True, 'election': election.as_dict()}, status=201)


@require_http_methods(["GET"])
@json_login_required
def election_stats(request):
    """Turnout dashboard for ?electionId= or the current election."""
    return JsonResponse(results.dashboard_stats(resolve_election(request)))


@require_http_methods(["POST"])
@json_permission_required('elections.change_election')
def publish_results(request):
    payload = read_json(request)
    if 'published' not in payload:
        raise ValidationFailed('The "published" field is required')
    election = engine().state_machine.set_results_published(bool(payload['published']))
    state = 'published' if election.results_published else 'hidden'
    return JsonResponse({
        'message': f'Results {state} successfully',
        'resultsPublished': election.results_published,
    })


@require_http_methods(["PUT"])
@json_permission_required('elections.change_election')
def set_current_election(request, election_id):
    """Promote an election to current, keeping its isActive flag."""
    election = engine().state_machine.set_current(
        election_id, user=request.user, ip_address=get_client_ip(request),
    )
    return JsonResponse({'message': 'Current election updated', 'election': election.as_dict()})


@require_http_methods(["DELETE"])
@json_permission_required('elections.delete_election')
def delete_election(request, election_id):
    """Cascade-delete an election; reports per-table deletion counts."""
    stats = engine().state_machine.delete(
        election_id, user=request.user, ip_address=get_client_ip(request),
    )
    return JsonResponse({'message': 'Election and all related data deleted successfully', 'stats': stats})


@require_http_methods(["PUT"])
@json_permission_required('elections.change_election')
def move_election(request, election_id):
    """Move an election one place up or down in the list. Body: {direction}"""
    payload = read_json(request)
    direction = payload.get('direction')
    election = engine().state_machine.move(
        election_id, direction, user=request.user, ip_address=get_client_ip(request),
    )
    if election is None:
        return JsonResponse({'message': 'No change in position possible'})
    return JsonResponse({'message': f'Election moved {direction} successfully', 'election': election.as_dict()})


@require_http_methods(["POST"])
@json_permission_required('elections.change_election')
def copy_election_data(request):
    """Copy positions and candidates. Body: {sourceElectionId, targetElectionId}"""
    payload = read_json(request)
    details = engine().state_machine.copy_data(
        payload.get('sourceElectionId'),
        payload.get('targetElectionId'),
        user=request.user,
        ip_address=get_client_ip(request),
    )
    return JsonResponse({'message': 'Election data copied successfully', 'details': details})


@require_http_methods(["POST"])
@json_login_required
def toggle_election(request):
    election = engine().state_machine.toggle_active(user=request.user, ip_address=get_client_ip(request))
    return JsonResponse({
        'message': f"Election {'activated' if election.is_active else 'deactivated'} successfully",
        'isActive': election.is_active,
        'status': election.status,
        'election': election.as_dict(),
    })


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@require_http_methods(["GET", "PUT"])
async def system_settings(request):
    """
    GET: Settings enriched with the current election's schedule.
         Honors If-None-Match (304) and ?nocache=1.
    PUT: Partial settings update, mirrored onto the current election.
    """
    config = engine()

    if request.method == 'PUT':
        user = await request.auser()
        if not user.is_authenticated:
            return JsonResponse({'message': 'Authentication required'}, status=401)
        if not await sync_to_async(user.has_perm)('elections.change_setting'):
            return JsonResponse({'message': 'You do not have permission to perform this action'}, status=403)

        patch = read_json(request)
        payload = await sync_to_async(config.synchronizer.push_to_election)(patch)
        response = JsonResponse(payload)
        response['X-Settings-Source'] = 'updated'
        return response

    bypass = request.GET.get('nocache', '').lower() in ('1', 'true', 'yes')
    result = await config.read_path.settings(bypass_cache=bypass)

    if result.etag and request.headers.get('If-None-Match') == result.etag:
        response = HttpResponseNotModified()
        response['ETag'] = result.etag
        return response

    response = JsonResponse(result.payload)
    response['X-Settings-Source'] = result.source
    if result.etag:
        response['ETag'] = result.etag
    response['Cache-Control'] = 'no-cache' if bypass else 'private, max-age=60'
    return response


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------

@csrf_exempt
@require_http_methods(["POST"])
def submit_vote(request):
    """
    Record a ballot.

    Body: {voterId, selections: [{positionId, candidateId}], abstentions: [positionIdOrTitle]}
    """
    payload = read_json(request)
    selections = payload.get('selections') or []
    abstentions = payload.get('abstentions') or []
    if not isinstance(selections, list) or not isinstance(abstentions, list):
        raise ValidationFailed('selections and abstentions must be lists')

    receipt = ballots.submit_vote(
        voter_id=payload.get('voterId'),
        selections=selections,
        abstentions=abstentions,
        ip_address=get_client_ip(request),
        token_length=engine().token_length,
    )
    return JsonResponse(receipt.as_payload())


@csrf_exempt
@require_http_methods(["POST"])
def validate_voter(request):
    payload = read_json(request)
    result = ballots.validate_voter(payload.get('voterId'), payload.get('currentElectionId'))
    return JsonResponse(result)


# ---------------------------------------------------------------------------
# Results and diagnostics
# ---------------------------------------------------------------------------

@require_http_methods(["GET"])
def election_results(request):
    """
    Per-position tallies plus turnout.

    Anonymous callers only see results once they are published.
    """
    election = resolve_election(request)
    if election is None:
        raise NotFound('No election found')
    if not election.results_published and not request.user.is_authenticated:
        raise Forbidden('Results have not been published yet')

    tally = results.tally_results(election)
    tally['election'] = election.as_dict()
    return JsonResponse(tally)


@require_http_methods(["GET"])
def cache_stats(request):
    """Cache and circuit breaker statistics for staff."""
    if not request.user.is_authenticated:
        return JsonResponse({'message': 'Authentication required'}, status=401)
    if not request.user.is_staff:
        return JsonResponse({'message': 'Staff access required'}, status=403)

    config = engine()
    return JsonResponse({
        'cache': config.cache.stats(),
        'breakers': {
            'electionStatus': config.status_breaker.stats(),
            'settings': config.settings_breaker.stats(),
        },
    })
