from django.http import JsonResponse
from django.views.decorators.http import require_GET

from .catalog import QuestionNotFound, get_question, load_questions


@require_GET
def question_list(request):
    questions = load_questions()
    return JsonResponse({
        'success': True,
        'data': [q.to_dict() for q in questions],
        'count': len(questions),
    })


@require_GET
def question_detail(request, question_id):
    try:
        question = get_question(question_id)
    except QuestionNotFound as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=404)
    return JsonResponse({'success': True, 'data': question.to_dict()})
