"""
API views for the narrated classroom.

Lessons themselves run over the websocket (see realtime.py); these views
cover service health, teacher persona generation and background removal.
"""
import json
import logging

from asgiref.sync import async_to_sync
from django.http import HttpResponse, HttpResponseBadRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from classroom.errors import TeacherGenerationFailure
from classroom.serializers import GenerateTeacherSerializer
from classroom.services.alpha_matte import remove_background
from classroom.services.content_source import get_content_source
from classroom.services.speech import get_speech_source
from classroom.types import teacher_to_dict
from classroom.utils.data_urls import guess_image_mime

logger = logging.getLogger(__name__)

MAX_MATTE_UPLOAD_BYTES = 10 * 1024 * 1024


@csrf_exempt
def health_check(request):
    """
    GET /api/classroom/health/

    Check if the plan, media and speech services are configured.
    """
    health = {
        'ok': True,
        'services': {}
    }

    try:
        content_source = get_content_source()
        health['services']['plan_writer'] = {'available': content_source.plan_writer.available}
        health['services']['media_generator'] = {'available': content_source.media_generator.available}
    except Exception as e:
        health['services']['content_source'] = {'available': False, 'error': str(e)}
        health['ok'] = False

    try:
        speech = get_speech_source()
        health['services']['speech'] = {
            'available': speech.available,
            'provider': speech.__class__.__name__,
        }
    except Exception as e:
        health['services']['speech'] = {'available': False, 'error': str(e)}
        health['ok'] = False

    if not all(service.get('available') for service in health['services'].values()):
        health['ok'] = False

    status_code = 200 if health['ok'] else 503
    return JsonResponse(health, status=status_code)


@csrf_exempt
def generate_teacher_view(request):
    """
    POST /api/classroom/teachers/generate/

    Request:
    {
        "keyword": "dinosaur"
    }

    Response:
    {
        "ok": true,
        "teacher": {"id": "...", "name": "...", "voice_name": "Puck", ...}
    }
    """
    if request.method != 'POST':
        return HttpResponseBadRequest("POST only")

    try:
        body = json.loads(request.body.decode('utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return HttpResponseBadRequest("Invalid JSON")

    serializer = GenerateTeacherSerializer(data=body)
    if not serializer.is_valid():
        return JsonResponse({'ok': False, 'errors': serializer.errors}, status=400)

    keyword = serializer.validated_data['keyword']
    logger.info(f"Generating teacher persona: keyword='{keyword}'")

    try:
        teacher = async_to_sync(get_content_source().generate_teacher)(keyword)
    except TeacherGenerationFailure as e:
        logger.error(f"Teacher generation failed: {e}")
        return JsonResponse({'ok': False, 'error': str(e)}, status=502)

    return JsonResponse({'ok': True, 'teacher': teacher_to_dict(teacher)})


@csrf_exempt
def matte_view(request):
    """
    POST /api/classroom/matte/

    Body is raw image bytes; responds with a PNG whose border-connected
    white background is transparent. Undecodable images come back unchanged.
    """
    if request.method != 'POST':
        return HttpResponseBadRequest("POST only")

    data = request.body
    if not data:
        return HttpResponseBadRequest("Image body is required")
    if len(data) > MAX_MATTE_UPLOAD_BYTES:
        return HttpResponseBadRequest("Image too large")

    processed = remove_background(data)
    if processed is data:
        content_type = request.content_type or guess_image_mime(data)
    else:
        content_type = 'image/png'
    return HttpResponse(processed, content_type=content_type)
