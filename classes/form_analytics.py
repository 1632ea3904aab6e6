import csv
import io

from classes.form_grader import FormGrader

CHOICE_TYPES = ("multiple_choice", "dropdown", "checkboxes", "true_false")


def _answer_text(answer):
    if answer is None:
        return ""
    if isinstance(answer, (list, tuple)):
        return ", ".join(str(a) for a in answer)
    return str(answer)


class FormAnalytics:
    @staticmethod
    def summarize(form, responses, passing_percentage=60):
        settings = form.effective_settings
        questions = sorted(form.questions or [], key=lambda q: q.get("order", 0))

        completion_times = [r.completion_time for r in responses if r.completion_time is not None]
        average_completion = round(sum(completion_times) / len(completion_times)) if completion_times else 0

        question_stats = []
        for question in questions:
            qid = str(question.get("id"))
            answers = [
                a for r in responses for a in (r.answers or [])
                if str(a.get("question_id")) == qid
            ]
            stats = {
                "question_id": question.get("id"),
                "title": question.get("title"),
                "type": question.get("type"),
                "response_count": len(answers),
            }
            qtype = question.get("type")
            if qtype in CHOICE_TYPES:
                options = question.get("options") or (["True", "False"] if qtype == "true_false" else [])
                counts = {str(option): 0 for option in options}
                for answer in answers:
                    values = answer.get("answer")
                    for value in values if isinstance(values, list) else [values]:
                        if value is None:
                            continue
                        counts[str(value)] = counts.get(str(value), 0) + 1
                stats["option_counts"] = counts
            elif qtype == "linear_scale":
                values = []
                for answer in answers:
                    try:
                        values.append(float(answer.get("answer")))
                    except (TypeError, ValueError):
                        continue
                counts = {}
                for value in values:
                    key = str(int(value)) if value.is_integer() else str(value)
                    counts[key] = counts.get(key, 0) + 1
                stats["average"] = round(sum(values) / len(values), 2) if values else 0
                stats["counts"] = counts
            else:
                stats["responses"] = [_answer_text(a.get("answer")) for a in answers if a.get("answer") not in (None, "")]

            if FormGrader.is_gradable(question, settings):
                correct = sum(1 for a in answers if a.get("is_correct"))
                stats["correct_count"] = correct
                stats["incorrect_count"] = len(answers) - correct
                stats["correct_percentage"] = round(correct / len(answers) * 100, 2) if answers else 0
            question_stats.append(stats)

        summary = {
            "form_id": form.id,
            "total_responses": len(responses),
            "average_completion_time": average_completion,
            "questions": question_stats,
        }

        if settings.get("is_quiz"):
            scores = [r.score_percentage for r in responses]
            summary["quiz_analytics"] = {
                "average_score": round(sum(scores) / len(scores), 2) if scores else 0,
                "highest_score": max(scores) if scores else 0,
                "lowest_score": min(scores) if scores else 0,
                "pass_rate": round(
                    sum(1 for s in scores if s >= passing_percentage) / len(scores) * 100, 2
                ) if scores else 0,
                "passing_percentage": passing_percentage,
            }
        return summary

    @staticmethod
    def to_csv(form, responses):
        """Render responses as CSV, one row per response."""
        questions = sorted(form.questions or [], key=lambda q: q.get("order", 0))
        is_quiz = form.effective_settings.get("is_quiz")

        output = io.StringIO()
        writer = csv.writer(output)
        header = ["Timestamp", "Respondent Name", "Respondent Email"]
        header += [q.get("title") for q in questions]
        if is_quiz:
            header += ["Score", "Max Score", "Percentage"]
        writer.writerow(header)

        for response in responses:
            respondent = response.respondent or {}
            by_question = {str(a.get("question_id")): a.get("answer") for a in (response.answers or [])}
            row = [
                response.submitted_at.isoformat() if response.submitted_at else "",
                respondent.get("name") or respondent.get("username") or "Anonymous",
                respondent.get("email") or "",
            ]
            row += [_answer_text(by_question.get(str(q.get("id")))) for q in questions]
            if is_quiz:
                row += [f"{response.score_total:g}", f"{response.score_max:g}", f"{response.score_percentage:.2f}"]
            writer.writerow(row)
        return output.getvalue()
