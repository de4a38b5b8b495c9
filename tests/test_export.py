import io
from datetime import date, timedelta

from openpyxl import load_workbook

from cdc_attendance import db
from cdc_attendance.models import Batch, Student
from cdc_attendance.services.export_service import ExportService, XLSX_MIMETYPE, sheet_name
from cdc_attendance.utils.constants import TIME_SLOTS

from conftest import DAY, mark_bulk


def export(client, teacher, **query):
    params = {'month': DAY.month, 'year': DAY.year}
    params.update(query)
    return client.get(f'/api/users/teachers/{teacher.id}/attendance-export', query_string=params)


def mark_week(client, seed):
    arjun, bhavna, chetan, divya = seed['students']
    mark_bulk(client, seed['batch'], [(arjun, 'present'), (bhavna, 'absent'), (chetan, 'late')])
    mark_bulk(client, seed['batch'], [(arjun, 'absent'), (divya, 'present')], day=DAY + timedelta(days=1))


def test_monthly_grid(teacher_client, seed):
    mark_week(teacher_client, seed)

    response = export(teacher_client, seed['teacher'])
    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['teacher']['employeeId'] == 'CAD-002'
    assert (data['month'], data['monthName'], data['year']) == (3, 'March', 2024)
    assert len(data['batches']) == 1

    sheet = data['batches'][0]
    assert sheet['sheetName'] == 'AutoCAD Morning A'
    assert len(sheet['days']) == 31
    assert sheet['days'][0] == {'day': 1, 'date': '2024-03-01', 'dayName': 'Fri'}

    rows = {row['student']['name']: row for row in sheet['students']}
    assert [row['student']['rollNo'] for row in sheet['students']] == ['1', '2', '3', '4']
    assert rows['Arjun']['attendance'][13]['displayStatus'] == 'P'
    assert rows['Arjun']['attendance'][14]['displayStatus'] == 'A'
    assert rows['Bhavna']['attendance'][13] == {'day': 14, 'status': 'absent', 'displayStatus': 'A'}
    assert rows['Chetan']['attendance'][13]['displayStatus'] == 'L'
    assert rows['Divya']['attendance'][13] == {'day': 14, 'status': None, 'displayStatus': ''}
    assert rows['Arjun']['totals'] == {'present': 1, 'absent': 1, 'late': 0}
    assert sum(1 for entry in rows['Chetan']['attendance'] if entry['displayStatus']) == 1


def test_february_of_a_leap_year(teacher_client, seed):
    data = export(teacher_client, seed['teacher'], month=2).get_json()['data']
    assert [day['day'] for day in data['batches'][0]['days']] == list(range(1, 30))


def test_batches_outside_the_month_or_empty_are_left_out(teacher_client, seed):
    teacher = seed['teacher']
    later = Batch(name='Revit Late Starters', course_id=seed['course'].id, academic_year='2023-24', section='C',
                  timing=TIME_SLOTS[2], start_date=date(2024, 4, 1), created_by=teacher.id)
    finished = Batch(name='Old Batch', course_id=seed['course'].id, academic_year='2022-23', section='D',
                     timing=TIME_SLOTS[2], start_date=date(2023, 6, 1), end_date=date(2024, 2, 20),
                     is_finished=True, created_by=teacher.id)
    empty = Batch(name='Nobody Yet', course_id=seed['course'].id, academic_year='2023-24', section='E',
                  timing=TIME_SLOTS[3], start_date=date(2024, 3, 1), created_by=teacher.id)
    db.session.add_all([later, finished, empty])
    db.session.flush()
    db.session.add_all([Student(name='Farhan', roll_no='1', batch_id=later.id),
                        Student(name='Gita', roll_no='1', batch_id=finished.id)])
    db.session.commit()

    data = export(teacher_client, teacher).get_json()['data']
    assert [sheet['batch']['name'] for sheet in data['batches']] == ['AutoCAD Morning A']


def test_roll_numbers_sort_numerically(teacher_client, seed):
    db.session.add(Student(name='Zoya', roll_no='10', batch_id=seed['batch'].id))
    db.session.commit()

    data = export(teacher_client, seed['teacher']).get_json()['data']
    assert [row['student']['rollNo'] for row in data['batches'][0]['students']] == ['1', '2', '3', '4', '10']


def test_xlsx_download(teacher_client, seed):
    mark_week(teacher_client, seed)

    response = export(teacher_client, seed['teacher'], format='xlsx')
    assert response.status_code == 200
    assert response.mimetype == XLSX_MIMETYPE
    assert 'Ravi_Teacher_March_2024_attendance.xlsx' in response.headers['Content-Disposition']

    workbook = load_workbook(io.BytesIO(response.data))
    assert workbook.sheetnames == ['AutoCAD Morning A']
    sheet = workbook['AutoCAD Morning A']
    header = [cell.value for cell in sheet[1]]
    assert header[:3] == ['Roll No', 'Student Name', '1\nFri']
    assert header[-3:] == ['Present', 'Absent', 'Late']
    assert len(header) == 2 + 31 + 3
    assert sheet.freeze_panes == 'C2'

    arjun = [cell.value for cell in sheet[2]]
    assert arjun[:2] == ['1', 'Arjun']
    assert arjun[2 + 13] == 'P'
    assert arjun[2 + 14] == 'A'
    assert arjun[-3:] == [1, 1, 0]


def test_teachers_export_only_their_own_grid(teacher_client, admin_client, seed):
    response = export(teacher_client, seed['other_teacher'])
    assert response.status_code == 403

    response = export(admin_client, seed['other_teacher'])
    assert response.status_code == 200
    assert response.get_json()['data']['batches'][0]['batch']['name'] == 'AutoCAD Evening B'


def test_month_and_year_are_checked(teacher_client, seed):
    assert export(teacher_client, seed['teacher'], month=13).status_code == 400
    assert export(teacher_client, seed['teacher'], year=1999).status_code == 400
    response = teacher_client.get(f"/api/users/teachers/{seed['teacher'].id}/attendance-export")
    assert response.status_code == 400


def test_sheet_names_are_workbook_safe():
    taken = set()
    assert sheet_name('CAD/CAM: Batch [A]?', taken) == 'CADCAM Batch A'
    long_name = 'Advanced Architectural Visualisation Evening'
    first = sheet_name(long_name, taken)
    assert first == long_name[:25]
    second = sheet_name(long_name, taken)
    assert second == long_name[:21] + ' (2)'
    assert len(second) <= 25
    assert sheet_name('', taken) == 'Batch'


def test_workbook_for_a_month_without_batches(app, seed):
    structure = ExportService.build(seed['lab_teacher'].id, 3, 2024)
    assert structure['batches'] == []
    workbook = load_workbook(ExportService.workbook(structure))
    assert workbook.sheetnames == ['Summary']
