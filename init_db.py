# init_db.py
from workorders import create_app
from workorders.extensions import db
from workorders.models import User, Technician, Unit, ROLE_SUPERADMIN

SAMPLE_TECHNICIANS = [
    ('John Doe', 'TECH001'),
    ('Jane Smith', 'TECH002'),
    ('Mike Johnson', 'TECH003'),
    ('Sarah Wilson', 'TECH004'),
    ('David Brown', 'TECH005'),
]

DEFAULT_UNITS = ['pcs', 'ltr', 'set', 'kg', 'mtr']


def init_database():
    # 1. 创建所有表 (已存在的表不会重建)
    db.create_all()
    print("数据库表结构创建成功！")

    # 2. 创建默认超级管理员，首次登录后需修改密码
    admin = User.query.filter_by(username='superadmin').first()
    if not admin:
        admin = User(username='superadmin', first_name='Super', last_name='Admin',
                     role=ROLE_SUPERADMIN, first_login=True)
        admin.set_password('superadmin')
        db.session.add(admin)
        db.session.commit()
        print("超级管理员创建成功！(账号: superadmin / 密码: superadmin)")
    else:
        print("超级管理员已存在。")

    # 3. 演示用技术员
    for name, staff_id in SAMPLE_TECHNICIANS:
        if not Technician.query.filter_by(staff_id=staff_id).first():
            db.session.add(Technician(name=name, staff_id=staff_id))
    db.session.commit()
    print("技术员数据初始化完成。")

    # 4. 常用备件单位
    for name in DEFAULT_UNITS:
        if not Unit.query.filter_by(name=name).first():
            db.session.add(Unit(name=name))
    db.session.commit()
    print("备件单位初始化完成。")


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        init_database()
