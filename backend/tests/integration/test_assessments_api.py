"""
Integration Tests for assessments and the gradebook
"""
import pytest
from httpx import AsyncClient

from app.models.user import UserRole


async def create_assessment(client, headers, course_id, **overrides):
    payload = {
        'course_id': course_id,
        'title': 'Midterm exam',
        'assessment_type': 'midterm',
        'total_marks': 50,
    }
    payload.update(overrides)
    response = await client.post('/api/assessments', headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()['data']


class TestAssessments:

    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient, teacher_headers, student_headers, course):
        created = await create_assessment(client, teacher_headers, course.id)

        assert created['assessment_type'] == 'midterm'
        assert created['date'] is not None

        listing = await client.get(f'/api/assessments/course/{course.id}', headers=student_headers)
        assert [a['id'] for a in listing.json()['data']] == [created['id']]

    @pytest.mark.asyncio
    async def test_unknown_type(self, client: AsyncClient, teacher_headers, course):
        response = await client.post('/api/assessments', headers=teacher_headers, json={
            'course_id': course.id, 'title': 'Pop', 'assessment_type': 'oral', 'total_marks': 5,
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_student_cannot_create(self, client: AsyncClient, student_headers, course):
        response = await client.post('/api/assessments', headers=student_headers, json={
            'course_id': course.id, 'title': 'Pop', 'assessment_type': 'quiz', 'total_marks': 5,
        })

        assert response.status_code == 403


class TestGrades:

    @pytest.mark.asyncio
    async def test_record_and_overwrite(self, client: AsyncClient, teacher_headers, student_user, course):
        assessment = await create_assessment(client, teacher_headers, course.id)
        url = f"/api/assessments/{assessment['id']}/grades"

        first = await client.post(url, headers=teacher_headers, json={
            'grades': [{'student_id': student_user.id, 'marks_obtained': 31}],
        })
        second = await client.post(url, headers=teacher_headers, json={
            'grades': [{'student_id': student_user.id, 'marks_obtained': 42, 'remarks': 'Re-marked'}],
        })

        assert first.status_code == 200
        assert second.json()['data'][0]['id'] == first.json()['data'][0]['id']

        grades = await client.get(url, headers=teacher_headers)
        assert len(grades.json()['data']) == 1
        assert grades.json()['data'][0]['marks_obtained'] == 42
        assert grades.json()['data'][0]['remarks'] == 'Re-marked'

    @pytest.mark.asyncio
    async def test_marks_over_total(self, client: AsyncClient, teacher_headers, student_user, course):
        assessment = await create_assessment(client, teacher_headers, course.id)

        response = await client.post(f"/api/assessments/{assessment['id']}/grades", headers=teacher_headers, json={
            'grades': [{'student_id': student_user.id, 'marks_obtained': 51}],
        })

        assert response.status_code == 400
        assert response.json()['message'] == 'Marks must be between 0 and 50'

    @pytest.mark.asyncio
    async def test_student_not_in_course(self, client: AsyncClient, teacher_headers, make_user, course):
        assessment = await create_assessment(client, teacher_headers, course.id)
        outsider = await make_user(UserRole.STUDENT)

        response = await client.post(f"/api/assessments/{assessment['id']}/grades", headers=teacher_headers, json={
            'grades': [{'student_id': outsider.id, 'marks_obtained': 10}],
        })

        assert response.status_code == 400
        assert response.json()['message'] == f'Student {outsider.id} is not enrolled in this course'

    @pytest.mark.asyncio
    async def test_students_see_only_their_grade(self, client: AsyncClient, teacher_headers, admin_headers,
                                                 make_user, headers_for, student_user, student_headers,
                                                 section, course):
        classmate = await make_user(UserRole.STUDENT)
        await client.post(f'/api/sections/{section.id}/students', headers=admin_headers, json={
            'student_numbers': [classmate.user_number],
        })
        assessment = await create_assessment(client, teacher_headers, course.id)
        await client.post(f"/api/assessments/{assessment['id']}/grades", headers=teacher_headers, json={
            'grades': [
                {'student_id': student_user.id, 'marks_obtained': 40},
                {'student_id': classmate.id, 'marks_obtained': 20},
            ],
        })

        own = await client.get(f"/api/assessments/{assessment['id']}/grades", headers=student_headers)
        everyone = await client.get(f"/api/assessments/{assessment['id']}/grades", headers=teacher_headers)

        assert [g['student_id'] for g in own.json()['data']] == [student_user.id]
        assert len(everyone.json()['data']) == 2

    @pytest.mark.asyncio
    async def test_student_report(self, client: AsyncClient, teacher_headers, student_user, student_headers, course):
        assessment = await create_assessment(client, teacher_headers, course.id)
        await client.post(f"/api/assessments/{assessment['id']}/grades", headers=teacher_headers, json={
            'grades': [{'student_id': student_user.id, 'marks_obtained': 45}],
        })

        response = await client.get(f'/api/assessments/student/{student_user.id}', headers=student_headers)

        entry = response.json()['data'][0]
        assert entry['marks_obtained'] == 45
        assert entry['assessment']['title'] == 'Midterm exam'
        assert entry['course_name'] == 'Mathematics'

    @pytest.mark.asyncio
    async def test_report_private_to_student(self, client: AsyncClient, make_user, headers_for, student_user):
        classmate = await make_user(UserRole.STUDENT)

        response = await client.get(f'/api/assessments/student/{student_user.id}', headers=headers_for(classmate))

        assert response.status_code == 403
