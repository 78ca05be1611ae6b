def mc(text, points, correct=0, count=3):
    return {
        "question_text": text,
        "question_type": "multiple_choice",
        "points": points,
        "options": [
            {"option_text": f"{text} option {i}", "is_correct": i == correct}
            for i in range(count)
        ],
    }


def true_false(text, points, answer=True):
    return {
        "question_text": text,
        "question_type": "true_false",
        "points": points,
        "options": [
            {"option_text": "True", "is_correct": answer},
            {"option_text": "False", "is_correct": not answer},
        ],
    }


def short(text, points):
    return {"question_text": text, "question_type": "short_answer", "points": points}


def assessment_payload(school_id, teacher_id, questions, max_score=100, **extra):
    payload = {
        "school_id": str(school_id),
        "teacher_id": str(teacher_id),
        "title": "Chapter 5 Quiz",
        "max_score": max_score,
        "questions": questions,
    }
    payload.update(extra)
    return payload


def correct_option(question):
    return next(o for o in question.options if o.is_correct)


def wrong_option(question):
    return next(o for o in question.options if not o.is_correct)
