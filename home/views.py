from django.http import HttpResponse
from django.template import loader

from questions.catalog import load_questions


def index(request):
    template = loader.get_template("home/index.html")

    activities = [
        {
            "name": "Negative Controls: design your own control conditions",
            "url_name": "controlgroup:index",
            "summary": "Pick a research question, compare it with a complete negative control "
                       "and author the controls you would run.",
        },
    ]

    context = {
        "activities": activities,
        "question_count": len(load_questions()),
    }

    return HttpResponse(template.render(context, request))
