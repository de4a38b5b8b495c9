import os

from cdc_attendance import create_app, db
from cdc_attendance.models import User, Department, Course, Batch, Student, Attendance, Workstation, Booking
from config import config

# Create Flask application instance
app = create_app(config[os.environ.get('FLASK_CONFIG', 'default')])


@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'User': User,
        'Department': Department,
        'Course': Course,
        'Batch': Batch,
        'Student': Student,
        'Attendance': Attendance,
        'Workstation': Workstation,
        'Booking': Booking
    }


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=int(os.environ.get('PORT', 5000)),
            threaded=True)
