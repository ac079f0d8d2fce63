from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import Role
from accounts.permissions import IsAdminOrTeacher, IsStudent, require_role
from erp.exceptions import retry_on_conflict
from exams import models as exam_models
from exams.serializers import (
    BatchSerializer,
    EnterSerializer,
    ExamEntrySerializer,
    ReplaceBatchesSerializer,
    TestSerializer,
    TransitionLogSerializer,
    TransitionSerializer,
)
from exams.services import batch_scheduler, test_lifecycle


class TestListCreateView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def get(self, request, *args, **kwargs):
        include_archived = request.query_params.get('include_archived') == '1'
        qs = test_lifecycle.list_tests(include_archived=include_archived)
        return Response(TestSerializer(qs, many=True).data)

    def post(self, request, *args, **kwargs):
        serializer = TestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        test = test_lifecycle.create_test(serializer.validated_data, request.user)
        return Response(TestSerializer(test).data, status=status.HTTP_201_CREATED)


class TestDetailView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def get(self, request, id: int, *args, **kwargs):
        # archived tests stay retrievable by id
        test = get_object_or_404(exam_models.Test, pk=id)
        return Response(TestSerializer(test).data)


class TestBatchesView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def put(self, request, id: int, *args, **kwargs):
        test = get_object_or_404(exam_models.Test, pk=id)
        serializer = ReplaceBatchesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        now = timezone.now()
        if data['expected_version'] is None:
            updated = retry_on_conflict(test_lifecycle.replace_batches, test, data['batches'], request.user, now)
        else:
            updated = test_lifecycle.replace_batches(
                test, data['batches'], request.user, now, expected_version=data['expected_version'],
            )
        return Response({
            'id': updated.pk,
            'version': updated.version,
            'batches': BatchSerializer(updated.batches.all(), many=True).data,
        })


class TestTransitionView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def post(self, request, id: int, *args, **kwargs):
        test = get_object_or_404(exam_models.Test, pk=id)
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        needs_admin = data['to'] == exam_models.Test.Status.ARCHIVED or data['force']
        if needs_admin and not require_role(request.user, Role.ADMIN):
            raise PermissionDenied('Admin access required for archiving or forced transitions.')

        kwargs = {
            'expected_version': data['expected_version'],
            'early_close': data['early_close'],
            'force': data['force'],
        }
        now = timezone.now()
        if data['expected_version'] is None:
            # the service re-reads the version on each attempt
            updated = retry_on_conflict(test_lifecycle.transition_test, test, data['to'], request.user, now, **kwargs)
        else:
            updated = test_lifecycle.transition_test(test, data['to'], request.user, now, **kwargs)
        return Response({'id': updated.pk, 'status': updated.status, 'version': updated.version})


class TestTransitionHistoryView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def get(self, request, id: int, *args, **kwargs):
        test = get_object_or_404(exam_models.Test, pk=id)
        logs = test_lifecycle.transition_history(test)
        return Response(TransitionLogSerializer(logs, many=True).data)


class EnterTestView(APIView):
    permission_classes = (IsStudent,)

    def post(self, request, id: int, *args, **kwargs):
        test = get_object_or_404(exam_models.Test, pk=id)
        serializer = EnterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if serializer.validated_data['student_id'] != request.user.pk:
            raise PermissionDenied('Students may only enter tests for themselves.')
        now = serializer.validated_data['now'] or timezone.now()
        entry = batch_scheduler.authorize_entry(test, request.user, now)
        return Response(ExamEntrySerializer(entry).data)


class _OwnEntryView(APIView):
    permission_classes = (IsStudent,)

    def _check_owner(self, request, token):
        get_object_or_404(exam_models.ExamEntry, token=token, student=request.user)


class StartEntryView(_OwnEntryView):

    def post(self, request, token: str, *args, **kwargs):
        self._check_owner(request, token)
        entry = batch_scheduler.start_session(token, timezone.now())
        return Response(ExamEntrySerializer(entry).data)


class EndEntryView(_OwnEntryView):

    def post(self, request, token: str, *args, **kwargs):
        self._check_owner(request, token)
        entry = batch_scheduler.end_session(token, timezone.now())
        return Response(ExamEntrySerializer(entry).data)


class AvailableTestsView(APIView):
    permission_classes = (IsStudent,)

    def get(self, request, *args, **kwargs):
        items = batch_scheduler.available_tests_for_student(request.user, timezone.now())
        return Response([
            {
                'test_id': item['test'].pk,
                'title': item['test'].title,
                'subject': item['test'].subject,
                'duration_minutes': item['test'].duration_minutes,
                'batch_id': item['batch'].pk,
                'batch_label': item['batch'].label,
                'start_time': item['batch'].start_time,
                'end_time': item['batch'].end_time,
                'is_open': item['is_open'],
            }
            for item in items
        ])
