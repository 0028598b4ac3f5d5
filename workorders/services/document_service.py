# workorders/services/document_service.py
import os
import time

from flask import current_app
from werkzeug.utils import secure_filename

from workorders.extensions import db
from workorders.errors import ValidationError
from workorders.services.work_order_service import WorkOrderService

REFERENCE_SUBDIR = 'references'


def _file_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


class DocumentService:
    """
    工单参考文件 (图片或 PDF)
    先写新文件再更新数据库，数据库提交成功后才删除旧文件，删除失败只记日志
    """

    @staticmethod
    def upload_dir():
        path = os.path.join(current_app.config['UPLOAD_FOLDER'], REFERENCE_SUBDIR)
        os.makedirs(path, exist_ok=True)
        return path

    @staticmethod
    def absolute_path(relative_path):
        return os.path.join(current_app.config['UPLOAD_FOLDER'], *relative_path.split('/'))

    @staticmethod
    def validate(file):
        if file is None or not file.filename:
            raise ValidationError('No file provided')
        mimetype = file.mimetype or ''
        if not mimetype.startswith('image/') and mimetype != 'application/pdf':
            raise ValidationError('Invalid file type. Only images and PDFs are allowed.')
        limit = current_app.config['MAX_REFERENCE_SIZE']
        if _file_size(file) > limit:
            raise ValidationError(f'File too large. Maximum size is {limit // (1024 * 1024)}MB.')

    @staticmethod
    def replace(work_order_id, file):
        DocumentService.validate(file)
        order = WorkOrderService.get(work_order_id)
        previous = order.reference_document

        # 1. 写入新文件
        safe_name = secure_filename(file.filename)
        extension = safe_name.rsplit('.', 1)[-1].lower() if '.' in safe_name else 'bin'
        filename = f'work-order-{order.id}-ref-{int(time.time() * 1000)}.{extension}'
        file.save(os.path.join(DocumentService.upload_dir(), filename))
        relative_path = f'{REFERENCE_SUBDIR}/{filename}'

        # 2. 更新数据库
        order.reference_document = relative_path
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.warning('Reference file %s left orphaned after failed update', relative_path)
            raise

        # 3. 删除旧文件
        if previous and previous != relative_path:
            DocumentService.remove_file(previous)

        current_app.logger.info('Reference document for work order %s set to %s',
                                order.work_order_no, relative_path)
        return order

    @staticmethod
    def delete(work_order_id):
        order = WorkOrderService.get(work_order_id)
        if not order.reference_document:
            raise ValidationError('No reference document to delete')

        previous = order.reference_document
        order.reference_document = None
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        # 数据库已不再引用，再删除文件
        DocumentService.remove_file(previous)
        return order

    @staticmethod
    def remove_file(relative_path):
        """ 尽力删除，失败不影响主流程 """
        path = DocumentService.absolute_path(relative_path)
        if not os.path.exists(path):
            return False
        try:
            os.remove(path)
            return True
        except OSError as e:
            current_app.logger.warning('Failed to delete reference file %s: %s', path, e)
            return False
